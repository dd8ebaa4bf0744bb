"""
veeamcred.security.dpapi
========================

Decryption through the target host's Data Protection API (DPAPI).

Secrets protected with the machine scope can only be unprotected by code running on the machine that
protected them, so this backend is a proxy: it renders a PowerShell script around
System.Security.Cryptography.ProtectedData and runs it through the remote executor. For
documentation on the underlying calls, see:
    https://learn.microsoft.com/en-us/dotnet/api/system.security.cryptography.protecteddata

Each payload is answered by exactly one output line holding the base64 of the raw plaintext bytes,
or an empty line if the payload could not be unprotected. Plaintext bytes are decoded locally, so
neither newlines inside a secret nor non-ASCII characters can shift or corrupt the output.

All interpolation into PowerShell source happens in render_unprotect_script(), and only after every
interpolated value has passed the base64 alphabet check.
"""


import base64
import binascii
import collections
import enum
import logging


from ..abc.remote import RemoteExecutor
from ..exceptions import DecryptionError, UnknownFailureError, verify_type
from ..strings import BASE64_PATTERN, is_base64, strip_nulls
from .encryption import from_bytes
from .results import DecryptResult


__author__ = 'Aaron Hosford'
__all__ = [
    'TextEncoding',
    'UnprotectRequest',
    'render_unprotect_script',
    'render_protect_empty_script',
    'parse_unprotect_output',
    'normalize_base64',
    'HostProtectionService',
    'VEEAM_ONE_DB_ENTROPY',
]


log = logging.getLogger(__name__)


SCOPE = 'LocalMachine'

# Static entropy compiled into VeeamRegSettings.dll, used for the Veeam ONE database login. It is the
# base64 of the UTF-16LE text "{F0F8C9DE-AB1E-48b6-8221-665E5B016E70}".
VEEAM_ONE_DB_ENTROPY = \
    'ewBGADAARgA4AEMAOQBEAEUALQBBAEIAMQBFAC0ANAA4AGIANgAtADgAMgAyADEALQA2ADYANQBFADUAQgAwADEANgBFADcAMAB9AA=='

_PREAMBLE = 'Add-Type -AssemblyName System.Security;'

_UNPROTECT_TEMPLATE = (
    _PREAMBLE +
    "@(%(payloads)s)|ForEach-Object {try {[Convert]::ToBase64String("
    "[Security.Cryptography.ProtectedData]::Unprotect([Convert]::FromBase64String($_), %(entropy)s, "
    "'%(scope)s'))} catch {''}}"
)

_PROTECT_EMPTY_TEMPLATE = (
    _PREAMBLE +
    "[Convert]::ToBase64String([Security.Cryptography.ProtectedData]::Protect("
    "[byte[]]@(), $Null, '%(scope)s'))"
)


class TextEncoding(enum.Enum):
    """How the raw plaintext bytes of a protected secret encode text."""

    ASCII = 'ascii'
    UNICODE = 'utf-16-le'

    def decode(self, data):
        """
        Decode recovered plaintext bytes.

        :param data: The raw plaintext bytes.
        :return: The text, without NUL characters.
        """
        if self is TextEncoding.UNICODE:
            return strip_nulls(data.decode('utf-16-le', 'surrogatepass'))
        return from_bytes(data)


class UnprotectRequest(collections.namedtuple('UnprotectRequest', 'payloads entropy')):
    """
    A structured request to unprotect one or more base64 payloads, optionally with additional
    entropy. All values are checked against the base64 alphabet on construction.
    """

    def __new__(cls, payloads, entropy=None):
        payloads = tuple(payloads)
        for payload in payloads:
            verify_type(payload, str, non_empty=True)
            if not BASE64_PATTERN.match(payload):
                raise ValueError("Payload is not base64: %r" % payload)
        verify_type(entropy, str, allow_none=True)
        if entropy is not None and not BASE64_PATTERN.match(entropy):
            raise ValueError("Entropy is not base64: %r" % entropy)
        return super().__new__(cls, payloads, entropy or None)


def render_unprotect_script(request):
    """
    Render the PowerShell script for an unprotect request.

    :param request: An UnprotectRequest.
    :return: The script text.
    """
    verify_type(request, UnprotectRequest)
    if request.entropy is None:
        entropy = '$Null'
    else:
        entropy = "[Convert]::FromBase64String('%s')" % request.entropy
    return _UNPROTECT_TEMPLATE % {
        'payloads': ','.join("'%s'" % payload for payload in request.payloads),
        'entropy': entropy,
        'scope': SCOPE,
    }


def render_protect_empty_script():
    """Render the PowerShell script that protects an empty secret on the target."""
    return _PROTECT_EMPTY_TEMPLATE % {'scope': SCOPE}


def normalize_base64(text):
    """
    Bring a base64 value into canonical form, dropping whitespace and line breaks.

    :param text: The base64 text.
    :return: The canonical base64 text.
    """
    verify_type(text, str)
    return base64.b64encode(base64.b64decode(''.join(text.split()))).decode('ascii')


def parse_unprotect_output(output, count, encoding=TextEncoding.ASCII):
    """
    Split the output of an unprotect script back into one result per payload. Lines missing from
    the end of the output are treated as empty.

    :param output: The raw script output.
    :param count: The number of payloads in the request.
    :param encoding: The text encoding of the plaintexts.
    :return: A list of DecryptResult instances, one per payload.
    """
    lines = strip_nulls(output or '').replace('\r', '').split('\n')
    results = []
    for index in range(count):
        line = lines[index].strip() if index < len(lines) else ''
        if not line:
            results.append(DecryptResult.empty())
            continue
        try:
            plaintext = encoding.decode(base64.b64decode(line, validate=True))
        except (binascii.Error, ValueError) as exc:
            results.append(DecryptResult.failed(DecryptionError("Unexpected DPAPI output: %s" % exc)))
        else:
            results.append(DecryptResult.value(plaintext))
    return results


class HostProtectionService:
    """
    Unprotects DPAPI secrets on the target host through a remote executor.

    In batch mode, which is the default, every secret in a call to unprotect_many() is handled by a
    single remote invocation. Missing secrets are replaced with a freshly protected empty secret so
    that the output stays aligned with the input. In sequential mode, each secret gets its own
    remote invocation.
    """

    def __init__(self, executor, entropy=None, encoding=TextEncoding.ASCII, batch=True):
        verify_type(executor, RemoteExecutor)
        verify_type(entropy, str, allow_none=True)
        verify_type(encoding, TextEncoding)
        verify_type(batch, bool)

        self._executor = executor
        self._entropy = entropy or None
        self._encoding = encoding
        self._batch = batch

    @property
    def entropy(self):
        """The base64 entropy passed with every request, or None."""
        return self._entropy

    @property
    def encoding(self):
        """The text encoding of the protected secrets."""
        return self._encoding

    @property
    def batch(self):
        """Whether unprotect_many() uses a single remote invocation."""
        return self._batch

    def protect_empty(self):
        """
        Protect an empty secret on the target, for use as a placeholder in batch requests.

        :return: The base64 protected blob.
        """
        blob = ''.join(strip_nulls(self._executor.execute_powershell(render_protect_empty_script())).split())
        if not blob or not is_base64(blob):
            raise UnknownFailureError("Could not generate a blank DPAPI blob on the target.")
        log.debug("Generated blank DPAPI blob %s", blob)
        return blob

    def _run(self, payloads):
        request = UnprotectRequest(payloads, self._entropy)
        output = self._executor.execute_powershell(render_unprotect_script(request))
        return parse_unprotect_output(output, len(payloads), self._encoding)

    def unprotect(self, ciphertext):
        """
        Unprotect a single secret.

        :param ciphertext: The base64 protected secret.
        :return: A DecryptResult.
        """
        return self.unprotect_many([ciphertext])[0]

    def unprotect_many(self, ciphertexts):
        """
        Unprotect a sequence of secrets. The results are aligned with the input: entry i of the
        result belongs to entry i of the input. A None entry yields an EMPTY result and an entry that
        is not valid base64 yields an ERROR result, in both cases without being sent to the target.

        :param ciphertexts: The base64 protected secrets, with None for missing ones.
        :return: A list of DecryptResult instances.
        """
        ciphertexts = list(ciphertexts)

        results = [None] * len(ciphertexts)
        payloads = [None] * len(ciphertexts)
        for index, ciphertext in enumerate(ciphertexts):
            if ciphertext is None or not ''.join(ciphertext.split()):
                results[index] = DecryptResult.empty()
            elif not is_base64(ciphertext):
                results[index] = DecryptResult.failed(DecryptionError("Invalid base64 ciphertext"))
            else:
                try:
                    payloads[index] = normalize_base64(ciphertext)
                except binascii.Error as exc:
                    results[index] = DecryptResult.failed(DecryptionError("Invalid base64 ciphertext: %s" % exc))

        pending = [index for index, payload in enumerate(payloads) if payload is not None]
        if not pending:
            return results

        if self._batch:
            if len(pending) < len(payloads):
                blank = self.protect_empty()
                request_payloads = [blank if payload is None else payload for payload in payloads]
            else:
                request_payloads = payloads
            log.debug("Unprotecting %d secrets in one remote call", len(request_payloads))
            batch_results = self._run(request_payloads)
            for index in pending:
                results[index] = batch_results[index]
        else:
            for index in pending:
                results[index] = self._run([payloads[index]])[0]

        return results
