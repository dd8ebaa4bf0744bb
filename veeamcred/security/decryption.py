"""
veeamcred.security.decryption
=============================

Selection between the two decryption backends behind a single contract.
"""


import base64
import binascii
import enum
import logging


from ..exceptions import DecryptionError, verify_type
from ..strings import is_base64
from .dpapi import HostProtectionService, TextEncoding
from .encryption import legacy_decrypt
from .results import DecryptResult


__author__ = 'Aaron Hosford'
__all__ = [
    'Strategy',
    'SecretDecryptor',
]


log = logging.getLogger(__name__)


class Strategy(enum.Enum):
    """
    The scheme that protects the secrets of a target. The value of each member is the disposition
    tag recorded for secrets recovered with it.
    """

    LEGACY_KEY = 'AES'
    HOST_PROTECTION = 'DPAPI'

    @property
    def disposition(self):
        return self.value


class SecretDecryptor:
    """
    Decrypts base64 secrets with one fixed strategy. Ciphertexts that fail the base64 alphabet check
    are reported as errors without being handed to either backend.
    """

    @classmethod
    def for_context(cls, context, executor):
        """
        Build the decryptor for a run.

        :param context: A veeamcred.context.RunContext.
        :param executor: The remote executor, used by the host protection backend.
        :return: A new SecretDecryptor.
        """
        target = context.target
        return cls(
            target.strategy,
            executor=executor,
            entropy=target.entropy,
            encoding=target.product.secret_encoding,
            batch=context.batch,
        )

    def __init__(self, strategy, executor=None, entropy=None, encoding=TextEncoding.ASCII, batch=True):
        verify_type(strategy, Strategy)
        verify_type(encoding, TextEncoding)

        if strategy is Strategy.HOST_PROTECTION:
            if executor is None:
                raise ValueError("The host protection strategy requires a remote executor.")
            self._service = HostProtectionService(executor, entropy, encoding, batch)
        else:
            self._service = None

        self._strategy = strategy
        self._encoding = encoding

    @property
    def strategy(self):
        """The strategy used for every secret."""
        return self._strategy

    def _decrypt_legacy(self, ciphertext):
        try:
            data = base64.b64decode(''.join(ciphertext.split()), validate=True)
        except binascii.Error as exc:
            return DecryptResult.failed(DecryptionError("Invalid base64 ciphertext: %s" % exc))
        try:
            plaintext = legacy_decrypt(data)
        except DecryptionError as exc:
            return DecryptResult.failed(exc)
        try:
            return DecryptResult.value(self._encoding.decode(plaintext))
        except UnicodeDecodeError as exc:
            error = DecryptionError("Legacy plaintext is not %s text: %s" % (self._encoding.name, exc))
            return DecryptResult.failed(error)

    def decrypt(self, ciphertext):
        """
        Decrypt a single secret.

        :param ciphertext: The base64 secret, or None.
        :return: A DecryptResult.
        """
        return self.decrypt_many([ciphertext])[0]

    def decrypt_many(self, ciphertexts):
        """
        Decrypt a sequence of secrets. Entry i of the result belongs to entry i of the input; a None
        entry yields an EMPTY result.

        :param ciphertexts: The base64 secrets, with None for missing ones.
        :return: A list of DecryptResult instances.
        """
        ciphertexts = list(ciphertexts)
        for ciphertext in ciphertexts:
            verify_type(ciphertext, str, allow_none=True)

        if self._service is not None:
            return self._service.unprotect_many(ciphertexts)

        results = []
        for ciphertext in ciphertexts:
            if ciphertext is None or not ciphertext.strip():
                results.append(DecryptResult.empty())
            elif not is_base64(ciphertext):
                results.append(DecryptResult.failed(DecryptionError("Invalid base64 ciphertext")))
            else:
                results.append(self._decrypt_legacy(ciphertext))
        return results
