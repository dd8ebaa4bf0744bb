import logging
import unittest

from veeamcred.strings import is_base64, parse_bool, parse_int, parse_log_level, strip_nulls, to_list_of_strings
from veeamcred.utility import distinct


class TestParsing(unittest.TestCase):

    def testParseBool(self):
        self.assertTrue(parse_bool('true'))
        self.assertTrue(parse_bool(' Yes '))
        self.assertTrue(parse_bool('SSPI'))
        self.assertFalse(parse_bool('0'))
        self.assertFalse(parse_bool('', False))
        with self.assertRaises(ValueError):
            parse_bool('maybe')

    def testParseInt(self):
        self.assertEqual(parse_int('1'), 1)
        self.assertEqual(parse_int('', 0), 0)
        with self.assertRaises(ValueError):
            parse_int('1.5')

    def testParseLogLevel(self):
        self.assertEqual(parse_log_level('warning'), logging.WARNING)
        self.assertEqual(parse_log_level('15'), 15)

    def testListOfStrings(self):
        self.assertEqual(to_list_of_strings('a, b;c,,'), ['a', 'b', 'c'])
        self.assertEqual(to_list_of_strings(None), [])


class TestSecretText(unittest.TestCase):

    def testStripNulls(self):
        self.assertEqual(strip_nulls('p\x00a\x00s\x00s\x00'), 'pass')
        self.assertEqual(strip_nulls(b'p\x00\xff'), b'p\xff')
        self.assertIsNone(strip_nulls(None))

    def testBase64Alphabet(self):
        self.assertTrue(is_base64('QUJDRA=='))
        self.assertTrue(is_base64('QUJD\r\nRA=='))
        self.assertTrue(is_base64('a-b_'.replace('_', '/')))
        self.assertTrue(is_base64(''))
        self.assertFalse(is_base64('QUJD RA=!'))
        self.assertFalse(is_base64("x');Remove-Item C:\\ -Recurse;('"))
        self.assertFalse(is_base64('QQ===='))
        self.assertFalse(is_base64(None))


class TestUtility(unittest.TestCase):

    def testDistinct(self):
        self.assertEqual(distinct([2, 1, 2, 3, 1]), [2, 1, 3])
        self.assertEqual(distinct(['a', 'A', 'b'], key=str.lower), ['a', 'b'])


if __name__ == '__main__':
    unittest.main()
