import unittest

from veeamcred.security.credentials import Credential, MSSQL_PORT, Service


class TestCredential(unittest.TestCase):

    def testEmptyStringsBecomeNone(self):
        credential = Credential('', '', '')
        self.assertIsNone(credential.user)
        self.assertIsNone(credential.password)
        self.assertIsNone(credential.realm)
        self.assertFalse(credential)

    def testCompleteness(self):
        self.assertTrue(Credential('sa', 'pw').is_complete)
        self.assertFalse(Credential('sa', None).is_complete)
        self.assertTrue(Credential('sa', None))

    def testPasswordHidden(self):
        credential = Credential('admin', 'Secr3t', 'vCenter')
        self.assertEqual(str(credential), 'admin@vCenter')
        self.assertNotIn('Secr3t', repr(credential))
        self.assertEqual(repr(credential), "Credential('admin', '********', 'vCenter')")

    def testEquality(self):
        self.assertEqual(Credential('a', 'b'), Credential('a', 'b'))
        self.assertNotEqual(Credential('a', 'b'), Credential('a', 'c'))
        self.assertEqual(len({Credential('a', 'b'), Credential('a', 'b')}), 1)

    def testTypes(self):
        with self.assertRaises(TypeError):
            Credential(5, 'pw')


class TestService(unittest.TestCase):

    def testDefaults(self):
        service = Service('mssql', MSSQL_PORT)
        self.assertEqual(service.protocol, 'tcp')
        self.assertIsNone(service.address)

    def testValidation(self):
        with self.assertRaises(ValueError):
            Service('', 1)
        with self.assertRaises(TypeError):
            Service('mssql', '1433')


if __name__ == '__main__':
    unittest.main()
