import base64
import unittest

from veeamcred.exceptions import NoTargetError
from veeamcred.processing import RowState, process_rows
from veeamcred.security.decryption import SecretDecryptor, Strategy
from veeamcred.security.encryption import legacy_encrypt
from veeamcred.tables import Table
from veeamcred.targets import EXPORT_HEADERS, Product

from test_veeamcred.fakes import FakeHost


def legacy_secret(plaintext):
    return base64.b64encode(legacy_encrypt(plaintext.encode('utf-16-le'))).decode('ascii')


def export_table(*rows):
    table = Table(EXPORT_HEADERS)
    for row in rows:
        table.append_row(row)
    return table


class TestLegacyRows(unittest.TestCase):

    def setUp(self):
        self.decryptor = SecretDecryptor(Strategy.LEGACY_KEY)

    def testMixedExport(self):
        table = export_table(
            ['a1', '1', 'admin', legacy_secret('Adm1n!'), 'VeeamONE Credential', '0'],
            ['a2', '2', 'svc', None, 'VeeamONE Credential', '0'],
            ['a3', '3', 'broken', 'bm90IGEgc2VjcmV0', 'VeeamONE Credential', '0'],
            ['a4', '4', 'ops', legacy_secret('0ps-P4ss'), 'VeeamONE Credential', '0'],
            ['a5', '5', 'backup', legacy_secret('B4ckup'), 'VeeamONE Credential', '0'],
        )
        outcome = process_rows(table, self.decryptor, Product.ONE_MONITOR)

        self.assertEqual(outcome.processed, 5)
        self.assertEqual(outcome.blank, 1)
        self.assertEqual(outcome.failed, 1)
        self.assertEqual(outcome.decrypted, 3)
        self.assertEqual(outcome.decrypted_by(Strategy.LEGACY_KEY), 3)
        self.assertEqual(outcome.decrypted_by(Strategy.HOST_PROTECTION), 0)
        self.assertEqual(outcome.plaintext, 0)
        self.assertEqual(outcome.recovered, 3)
        self.assertEqual(outcome.total_result_rows, 3)
        self.assertEqual(outcome.total_result_secrets, 3)
        self.assertEqual(outcome.states, (RowState.DECRYPTED, RowState.BLANK, RowState.FAILED,
                                          RowState.DECRYPTED, RowState.DECRYPTED))
        self.assertTrue(outcome.succeeded)
        self.assertIs(outcome.verify(), outcome)

        result = outcome.result
        self.assertEqual(result.headers, list(Product.ONE_MONITOR.result_headers))
        self.assertEqual(result.column_values('Plaintext'), ['Adm1n!', '0ps-P4ss', 'B4ckup'])
        self.assertEqual(result.column_values('Method'), ['AES', 'AES', 'AES'])
        self.assertEqual(result.column_values('ID'), ['a1', 'a4', 'a5'])

    def testMissingIdIsFailedNotBlank(self):
        table = export_table(
            [None, '1', 'ghost', None, 'desc', '0'],
            ['b2', '2', 'user', legacy_secret('pw'), 'desc', '0'],
        )
        outcome = process_rows(table, self.decryptor, Product.ONE_MONITOR)
        self.assertEqual(outcome.states[0], RowState.MISSING_ID)
        self.assertEqual(outcome.missing_id, 1)
        self.assertEqual(outcome.failed, 1)
        self.assertEqual(outcome.blank, 0)
        self.assertEqual(outcome.decrypted, 1)

    def testBlankIsNeverFailed(self):
        table = export_table(
            ['c1', '1', 'empty', legacy_secret(''), 'desc', '0'],
            ['c2', '2', 'none', None, 'desc', '0'],
            ['c3', '3', 'real', legacy_secret('x'), 'desc', '0'],
        )
        outcome = process_rows(table, self.decryptor, Product.ONE_MONITOR)
        self.assertEqual(outcome.blank, 2)
        self.assertEqual(outcome.failed, 0)
        self.assertEqual(outcome.total_result_rows, 1)

    def testTalliesAddUp(self):
        table = export_table(
            [None, '1', 'x', 'QUJD', 'd', '0'],
            ['d2', '2', 'y', None, 'd', '0'],
            ['d3', '3', 'z', 'junk!', 'd', '0'],
            ['d4', '4', 'w', legacy_secret('w'), 'd', '0'],
        )
        outcome = process_rows(table, self.decryptor, Product.ONE_MONITOR)
        self.assertEqual(outcome.blank + outcome.failed + outcome.decrypted, outcome.processed)

    def testNothingRecovered(self):
        table = export_table(
            ['e1', '1', 'a', 'junk!', 'd', '0'],
            ['e2', '2', 'b', None, 'd', '0'],
        )
        outcome = process_rows(table, self.decryptor, Product.ONE_MONITOR)
        self.assertFalse(outcome.succeeded)
        with self.assertRaises(NoTargetError):
            outcome.verify()

    def testAllFailed(self):
        table = export_table(['f1', '1', 'a', 'junk!', 'd', '0'])
        with self.assertRaises(NoTargetError):
            process_rows(table, self.decryptor, Product.ONE_MONITOR).verify()


class TestHostProtectedRows(unittest.TestCase):

    def testBackupReplicationExport(self):
        host = FakeHost()
        table = export_table(
            ['1', '100', 'DOMAIN\\backup', host.protect('Backup#1'), 'Backup service account', '1'],
            ['2', '101', 'root', None, 'Linux repo', '1'],
            ['3', '102', 'esxi', host.protect('Esx1!'), 'vSphere', '0'],
        )
        decryptor = SecretDecryptor(Strategy.HOST_PROTECTION, executor=host)
        outcome = process_rows(table, decryptor, Product.BACKUP_REPLICATION)

        self.assertEqual(outcome.decrypted_by(Strategy.HOST_PROTECTION), 2)
        self.assertEqual(outcome.blank, 1)
        self.assertEqual(len(host.unprotect_calls), 1)

        result = outcome.result
        self.assertNotIn('Method', result.headers)
        self.assertEqual(dict(result[0]), {
            'ID': '1',
            'USN': '100',
            'Username': 'DOMAIN\\backup',
            'Plaintext': 'Backup#1',
            'Description': 'Backup service account',
            'Visible': '1',
        })
        self.assertEqual(result[1]['Plaintext'], 'Esx1!')

    def testUnprotectFailureIsBlank(self):
        # The target answers an unknown blob with an empty line, which is indistinguishable from an
        # empty secret.
        host = FakeHost()
        table = export_table(
            ['1', '1', 'a', 'bm90IGEgYmxvYg==', 'd', '1'],
            ['2', '2', 'b', host.protect('b'), 'd', '1'],
        )
        decryptor = SecretDecryptor(Strategy.HOST_PROTECTION, executor=host)
        outcome = process_rows(table, decryptor, Product.BACKUP_REPLICATION)
        self.assertEqual(outcome.states, (RowState.BLANK, RowState.DECRYPTED))


if __name__ == '__main__':
    unittest.main()
