import base64
import logging
import unittest

from veeamcred.configurations import ConfigManager
from veeamcred.db.parameters import VOM_DB_CONFIG_KEY
from veeamcred.exceptions import (
    BadConfigError,
    InvalidConfigurationError,
    NoTargetError,
    NotFoundError,
    RemoteExecutionError,
    UnknownFailureError,
)
from veeamcred.logging import LogStreamHandler
from veeamcred.orchestration import CredentialDump, DumpReport, get_hostname, validate_identities
from veeamcred.processing import Outcome, RowState
from veeamcred.security.credentials import Credential
from veeamcred.security.decryption import Strategy
from veeamcred.security.dpapi import TextEncoding, VEEAM_ONE_DB_ENTROPY
from veeamcred.security.encryption import legacy_encrypt
from veeamcred.sinks.logs import LogSink
from veeamcred.sinks.null import NullSink
from veeamcred.tables import Table
from veeamcred.targets import Product, Target, VBR_REGISTRY_KEY, VOM_REGISTRY_KEY
from veeamcred.versions import Version

from test_veeamcred.fakes import FakeHost, MemorySink


VBR_PATH = 'C:\\Program Files\\Veeam\\Backup and Replication\\Backup'
VOM_PATH = 'C:\\Program Files\\Veeam\\Veeam ONE\\Veeam ONE Monitor Server'


def legacy_secret(plaintext):
    return base64.b64encode(legacy_encrypt(plaintext.encode('utf-16-le'))).decode('ascii')


def install_vbr(host):
    """A Backup & Replication 11 server using Windows authentication for its database."""
    host.registry.set_key(VBR_REGISTRY_KEY, {
        'CorePath': VBR_PATH + '\\',
        'SqlServerName': 'VEEAMSRV',
        'SqlInstanceName': 'VEEAMSQL2016',
        'SqlDatabaseName': 'VeeamBackup',
    })
    host.add_file(VBR_PATH + '\\Packages\\VeeamDeploymentDll.dll', '11.0.1.1261')
    host.databases['VeeamBackup'] = ''.join(line + '\r\n' for line in [
        '7c8e3a4b-0001,1021,DOMAIN\\veeam,%s,Domain service account,1' % host.protect('D0main-Pass'),
        '7c8e3a4b-0002,1022,root,,Linux repository,1',
        '7c8e3a4b-0003,1023,administrator@vsphere.local,%s,vCenter,1' % host.protect('vSph3re!'),
    ])


def install_vom(host, entropy=None):
    """A Veeam ONE server using a SQL login for its database."""
    host.registry.set_key(VOM_REGISTRY_KEY, {
        'MonitorX64ClientDistributivePath': VOM_PATH + '\\ClientPackages\\VeeamONE.Monitor.Client.x64.msi',
    })
    host.registry.set_key(VOM_DB_CONFIG_KEY, {
        'host': 'VEEAMSRV\\VEEAMSQL2016',
        'db_name': 'VeeamOne',
        'db_auth_sql': '1',
        'db_login': host.protect('vone_sql', TextEncoding.UNICODE, VEEAM_ONE_DB_ENTROPY),
        'db_password': host.protect('V0ne-Sql!', TextEncoding.UNICODE, VEEAM_ONE_DB_ENTROPY),
    })
    host.add_file(VOM_PATH + '\\VeeamDCS.exe', '11.0.1.1880' if entropy else '11.0.0.833')
    host.entropy = entropy
    if entropy:
        first = host.protect('Esx1-Root', TextEncoding.UNICODE, entropy)
        second = host.protect('Hyp3rV', TextEncoding.UNICODE, entropy)
    else:
        first = legacy_secret('Esx1-Root')
        second = legacy_secret('Hyp3rV')
    host.databases['VeeamOne'] = ''.join(line + '\r\n' for line in [
        'f00d-0001,1,root,%s,VeeamONE Credential,0' % first,
        'f00d-0002,2,HYPERV\\admin,%s,VeeamONE Credential,0' % second,
    ])


class TestFullRun(unittest.TestCase):

    def setUp(self):
        self.host = FakeHost()
        self.sink = MemorySink()

    def dump(self, **kwargs):
        return CredentialDump(self.host, self.host.registry, sink=self.sink, **kwargs)

    def testBothProducts(self):
        install_vbr(self.host)
        install_vom(self.host)

        report = self.dump().run()

        self.assertIsInstance(report, DumpReport)
        self.assertTrue(report.succeeded)
        self.assertEqual(report.hostname, 'VEEAMSRV')
        self.assertEqual(list(report.outcomes), [Product.BACKUP_REPLICATION, Product.ONE_MONITOR])
        self.assertEqual(report.failures, {})

        self.assertEqual([artifact[0] for artifact in self.sink.artifacts],
                         ['veeam_vbr_enc', 'veeam_vbr_dec', 'veeam_vom_enc', 'veeam_vom_dec'])

        vbr = report.outcomes[Product.BACKUP_REPLICATION]
        self.assertEqual((vbr.processed, vbr.blank, vbr.failed, vbr.decrypted), (3, 1, 0, 2))
        self.assertEqual(vbr.decrypted_by(Strategy.HOST_PROTECTION), 2)
        self.assertEqual(
            self.sink.artifact('veeam_vbr_dec'),
            'ID,USN,Username,Plaintext,Description,Visible\n'
            '7c8e3a4b-0001,1021,DOMAIN\\veeam,D0main-Pass,Domain service account,1\n'
            '7c8e3a4b-0003,1023,administrator@vsphere.local,vSph3re!,vCenter,1\n'
        )

        vom = report.outcomes[Product.ONE_MONITOR]
        self.assertEqual(vom.decrypted_by(Strategy.LEGACY_KEY), 2)
        self.assertEqual(vom.result.column_values('Method'), ['AES', 'AES'])
        self.assertEqual(vom.result.column_values('Plaintext'), ['Esx1-Root', 'Hyp3rV'])

    def testEncryptedArtifact(self):
        install_vbr(self.host)
        self.dump().run()

        name, data, mime_type, label, file_name = self.sink.artifacts[0]
        self.assertEqual(name, 'veeam_vbr_enc')
        self.assertEqual(mime_type, 'text/csv')
        self.assertEqual(label, 'Encrypted Database Dump')
        self.assertEqual(file_name, 'VeeamBackup.csv')
        self.assertTrue(data.startswith('ID,USN,Username,Password,Description,Visible\n7c8e3a4b-0001,1021,'))
        self.assertEqual(len(data.splitlines()), 4)

    def testCredentialsAreStored(self):
        install_vbr(self.host)
        install_vom(self.host)
        self.dump().run()

        stored = [(service.name, service.realm, credential.user, credential.password)
                  for credential, service in self.sink.credentials]
        self.assertEqual(stored, [
            ('veeam', 'Domain service account', 'DOMAIN\\veeam', 'D0main-Pass'),
            ('veeam', 'vCenter', 'administrator@vsphere.local', 'vSph3re!'),
            ('mssql', 'VEEAMSRV\\VEEAMSQL2016', 'vone_sql', 'V0ne-Sql!'),
            ('veeam', 'VeeamONE Credential', 'root', 'Esx1-Root'),
            ('veeam', 'VeeamONE Credential', 'HYPERV\\admin', 'Hyp3rV'),
        ])
        for _, service in self.sink.credentials:
            self.assertEqual(service.address, 'VEEAMSRV')

    def testSqlLoginIsUsedForQueries(self):
        install_vom(self.host)
        self.dump().run()
        query, = self.host.queries
        self.assertIn('-U "vone_sql" -P "V0ne-Sql!"', query)
        self.assertIn('-d "VeeamOne" -S VEEAMSRV\\VEEAMSQL2016', query)

    def testIntegratedAuthenticationQuery(self):
        install_vbr(self.host)
        self.dump().run()
        query, = self.host.queries
        self.assertIn(' -E ', query)

    def testOneMonitorWithEntropy(self):
        install_vom(self.host, entropy='AQIDBAUGBwg=')
        report = self.dump().run()
        vom = report.outcomes[Product.ONE_MONITOR]
        self.assertEqual(vom.decrypted_by(Strategy.HOST_PROTECTION), 2)
        self.assertEqual(vom.result.column_values('Method'), ['DPAPI', 'DPAPI'])
        self.assertEqual(vom.result.column_values('Plaintext'), ['Esx1-Root', 'Hyp3rV'])

    def testBatchAndSequential(self):
        install_vbr(self.host)
        self.dump().run()
        self.assertEqual(len(self.host.unprotect_calls), 1)

        sequential = FakeHost()
        install_vbr(sequential)
        CredentialDump(sequential, sequential.registry, sink=MemorySink(), batch=False).run()
        self.assertEqual(len(sequential.unprotect_calls), 2)

    def testExportOnly(self):
        install_vbr(self.host)
        install_vom(self.host)
        report = self.dump(action='export').run()

        self.assertEqual(list(report.exports), [Product.BACKUP_REPLICATION, Product.ONE_MONITOR])
        self.assertEqual(report.outcomes, {})
        self.assertEqual([artifact[0] for artifact in self.sink.artifacts], ['veeam_vbr_enc', 'veeam_vom_enc'])
        self.assertEqual(self.host.unprotect_calls[1:], [])
        self.assertFalse(any(service.name == 'veeam' for _, service in self.sink.credentials))

    def testDecryptEarlierExport(self):
        install_vbr(self.host)
        self.dump(action='export').run()
        data = self.sink.artifact('veeam_vbr_enc')

        target = Target(Product.BACKUP_REPLICATION, Version.parse('11.0.1.1261'), VBR_PATH)
        outcome = self.dump().decrypt_export(data, target, 'VEEAMSRV')
        self.assertEqual(outcome.decrypted, 2)
        self.assertEqual(self.sink.artifacts[-1][0], 'veeam_vbr_dec')
        self.assertEqual(self.sink.artifacts[-1][4], 'vbr.csv')

    def testDefaultRegistryReadsThroughPowerShell(self):
        install_vbr(self.host)
        report = CredentialDump(self.host, sink=self.sink).run()
        self.assertEqual(report.outcomes[Product.BACKUP_REPLICATION].decrypted, 2)
        self.assertTrue(any(script.startswith('if (Test-Path') for script in self.host.scripts))


class TestFailures(unittest.TestCase):

    def setUp(self):
        self.host = FakeHost()
        self.sink = MemorySink()
        self.dump = CredentialDump(self.host, self.host.registry, sink=self.sink)

    def testNoProducts(self):
        with self.assertRaises(NoTargetError):
            self.dump.run()

    def testNoSqlCmd(self):
        install_vbr(self.host)
        self.host.sqlcmd = False
        with self.assertRaises(NotFoundError):
            self.dump.run()
        self.assertEqual(self.sink.artifacts, [])

    def testChannelFailure(self):
        install_vbr(self.host)
        self.host.fail = True
        with self.assertRaises(RemoteExecutionError):
            self.dump.run()

    def testOneProductFailing(self):
        install_vbr(self.host)
        install_vom(self.host)
        del self.host.databases['VeeamBackup']

        report = self.dump.run()
        self.assertTrue(report.succeeded)
        self.assertIsInstance(report.failures[Product.BACKUP_REPLICATION], UnknownFailureError)
        self.assertEqual(list(report.outcomes), [Product.ONE_MONITOR])

    def testBlankBlobFailureDoesNotStopOtherProduct(self):
        install_vbr(self.host)
        install_vom(self.host)
        self.host.protect_output = 'Exception calling "Protect" with "3" argument(s): "Access is denied."\r\n'

        report = self.dump.run()
        self.assertTrue(report.succeeded)
        self.assertIsInstance(report.failures[Product.BACKUP_REPLICATION], UnknownFailureError)
        self.assertEqual(list(report.outcomes), [Product.ONE_MONITOR])
        self.assertEqual(report.outcomes[Product.ONE_MONITOR].decrypted, 2)

    def testEveryProductFailing(self):
        install_vbr(self.host)
        install_vom(self.host)
        self.host.databases.clear()
        self.host.registry.set_key(VOM_DB_CONFIG_KEY, {
            'host': 'VEEAMSRV', 'db_name': 'VeeamOne', 'db_auth_sql': '1',
        })
        with self.assertRaises(UnknownFailureError):
            self.dump.run()

    def testMissingSqlLogin(self):
        install_vom(self.host)
        self.host.registry.set_key(VOM_DB_CONFIG_KEY, {
            'host': 'VEEAMSRV', 'db_name': 'VeeamOne', 'db_auth_sql': '1',
        })
        with self.assertRaises(BadConfigError):
            self.dump.run()

    def testNothingDecrypted(self):
        install_vbr(self.host)
        self.host.databases['VeeamBackup'] = '1,1,user,bm90IGEgYmxvYg==,desc,1\r\n'
        with self.assertRaises(NoTargetError):
            self.dump.run()
        self.assertEqual([artifact[0] for artifact in self.sink.artifacts], ['veeam_vbr_enc'])

    def testExportWithoutIds(self):
        install_vbr(self.host)
        self.host.databases['VeeamBackup'] = ',1,user,QUJD,desc,1\r\n'
        with self.assertRaises(UnknownFailureError):
            self.dump.run()

    def testBadExportFile(self):
        with self.assertRaises(NoTargetError):
            self.dump.load_export('')
        with self.assertRaises(NoTargetError):
            self.dump.load_export('Name,Password\nx,QUJD\n')

    def testPartialFailureStillSucceeds(self):
        install_vbr(self.host)
        self.host.databases['VeeamBackup'] += '7c8e3a4b-0004,1024,bad,bm90IGEgYmxvYg==!,x,1\r\n'
        report = self.dump.run()
        outcome = report.outcomes[Product.BACKUP_REPLICATION]
        self.assertEqual(outcome.failed, 1)
        self.assertEqual(outcome.states[-1], RowState.FAILED)


class TestHelpers(unittest.TestCase):

    def testHostname(self):
        self.assertEqual(get_hostname(FakeHost('BACKUP01')), 'BACKUP01')

    def testValidateIdentities(self):
        table = Table.parse('ID,Password\n1,a\n2,b\n1,c\n')
        self.assertEqual(validate_identities(table, NoTargetError, "no IDs"), 2)
        with self.assertRaises(NoTargetError):
            validate_identities(Table.parse('ID,Password\n,a\n'), NoTargetError, "no IDs")
        with self.assertRaises(UnknownFailureError):
            validate_identities(Table.parse('Name\nx\n'), UnknownFailureError, "no IDs")

    def testPlunderUsesDefaultRealm(self):
        host = FakeHost()
        sink = MemorySink()
        dump = CredentialDump(host, host.registry, sink=sink)
        table = Table(Product.BACKUP_REPLICATION.result_headers)
        table.append_row(['1', '1', 'user', 'pw', None, '1'])
        outcome = Outcome(Product.BACKUP_REPLICATION, [RowState.DECRYPTED],
                          {Strategy.HOST_PROTECTION: 1}, table)
        self.assertEqual(dump.plunder(outcome, 'HOST'), 1)
        credential, service = sink.credentials[0]
        self.assertEqual(credential, Credential('user', 'pw'))
        self.assertEqual(service.realm, 'Veeam Credential')


class TestConfiguration(unittest.TestCase):

    def testFromConfig(self):
        manager = ConfigManager({
            'Credential Dump': {'Batch DPAPI': 'no', 'Action': 'Export', 'Sink': '#Quiet'},
            'Quiet': {'Type': 'NullSink'},
        })
        dump = CredentialDump.from_config(FakeHost(), manager=manager)
        self.assertFalse(dump.batch)
        self.assertEqual(dump.action, 'export')
        self.assertIsInstance(dump.sink, NullSink)

    def testDefaults(self):
        dump = CredentialDump.from_config(FakeHost(), manager=ConfigManager({}))
        self.assertTrue(dump.batch)
        self.assertEqual(dump.action, 'dump')
        self.assertIsInstance(dump.sink, NullSink)

    def testSinkFromSection(self):
        manager = ConfigManager({
            'Credential Dump': {'Sink': '#Loot'},
            'Loot': {'Type': 'LogSink', 'Name': 'veeamcred.test.loot', 'Level': 'DEBUG'},
        })
        dump = CredentialDump.from_config(FakeHost(), manager=manager)
        self.assertIsInstance(dump.sink, LogSink)
        self.assertEqual(dump.sink.logger.name, 'veeamcred.test.loot')

    def testUnknownAction(self):
        with self.assertRaises(ValueError):
            CredentialDump(FakeHost(), action='explode')

    def testInvalidConfig(self):
        manager = ConfigManager({
            'Bad Sink': {'Sink': 'somewhere'},
            'Bad Action': {'Action': 'explode'},
        })
        with self.assertRaises(InvalidConfigurationError):
            CredentialDump.from_config(FakeHost(), manager=manager, section='Bad Sink')
        with self.assertRaises(InvalidConfigurationError):
            CredentialDump.from_config(FakeHost(), manager=manager, section='Bad Action')

    def testLoggingConfiguredFromConfig(self):
        logger = logging.getLogger('veeamcred.test.dump')
        def remove_handlers():
            for handler in list(logger.handlers):
                logger.removeHandler(handler)
        self.addCleanup(remove_handlers)
        manager = ConfigManager({
            'Logging': {'Loggers': 'Dump Logger'},
            'Dump Logger': {'Name': 'veeamcred.test.dump', 'Level': 'DEBUG', 'Handlers': 'Dump Handler'},
            'Dump Handler': {'Type': 'LogStreamHandler', 'Stream': 'stdout'},
        })
        CredentialDump.from_config(FakeHost(), manager=manager)
        CredentialDump.from_config(FakeHost(), manager=manager)
        self.assertEqual(logger.level, logging.DEBUG)
        self.assertEqual(len(logger.handlers), 1)
        self.assertIsInstance(logger.handlers[0], LogStreamHandler)


if __name__ == '__main__':
    unittest.main()
