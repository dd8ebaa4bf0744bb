"""
String parsing, normalization, and validation routines.
"""


import logging
import re


from .exceptions import verify_type
from .plugins import config_loader


__author__ = 'Aaron Hosford'
__all__ = [
    'parse_bool',
    'parse_int',
    'parse_log_level',
    'to_list_of_strings',
    'strip_nulls',
    'is_base64',
    'BASE64_PATTERN',
]


# The alphabet check applied to every ciphertext before any decryption is attempted. It admits the
# URL-safe dash so values the products themselves accept are not rejected here.
BASE64_PATTERN = re.compile(r'^[-A-Za-z0-9+/]*={0,3}$')


_TRUE_STRINGS = frozenset(['Y', 'YES', 'T', 'TRUE', 'ON', '1', 'SSPI'])
_FALSE_STRINGS = frozenset(['N', 'NO', 'F', 'FALSE', 'OFF', '0'])


@config_loader('bool')
def parse_bool(string, default=NotImplemented):
    """
    Parse a yes/no style flag. Registry flags and config options both go through here, so SSPI
    counts as true.

    :param string: The text to parse.
    :param default: Returned for blank text. Without it, blank text is an error.
    :return: The parsed bool value.
    """
    verify_type(string, str, non_empty=(default is NotImplemented))

    key = string.strip().upper()
    if not key and default is not NotImplemented:
        return default
    if key in _TRUE_STRINGS:
        return True
    if key in _FALSE_STRINGS:
        return False
    raise ValueError("Unrecognized Boolean string: %r" % string)


@config_loader('int')
def parse_int(string, default=NotImplemented):
    """
    Parse a decimal integer.

    :param string: The text to parse.
    :param default: Returned for blank text. Without it, blank text is an error.
    :return: The parsed integer value.
    """
    verify_type(string, str, non_empty=(default is NotImplemented))

    string = string.strip()
    if not string and default is not NotImplemented:
        return default
    try:
        return int(string)
    except ValueError:
        raise ValueError("Could not interpret string as integer: %r" % string) from None


@config_loader('log_level')
def parse_log_level(string):
    """Parse a log level given either by name (INFO, WARNING) or number."""
    verify_type(string, str, non_empty=True)
    string = string.strip()
    if string.isdigit():
        return int(string)
    level = logging.getLevelName(string.upper())
    if not isinstance(level, int):
        raise ValueError("Unknown log level: %r" % string)
    return level


@config_loader('list')
def to_list_of_strings(items):
    """
    Split a comma or semicolon delimited option into its non-blank items. A sequence of strings is
    accepted as already split.

    :param items: None, a delimited string, or a sequence of strings.
    :return: The stripped, non-blank items, in a list.
    """
    if not items:
        return []
    if isinstance(items, str):
        items = re.split('[,;]', items)
    result = []
    for item in items:
        verify_type(item, str)
        if item.strip():
            result.append(item.strip())
    return result


def strip_nulls(value):
    """
    Remove embedded NUL characters from text or bytes. Remote command output and values read from
    UTF-16 sources are littered with them, and they must be removed before display or persistence.

    :param value: A str or bytes instance, or None.
    :return: The same type, without NUL characters.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value.replace('\x00', '')
    verify_type(value, (bytes, bytearray))
    return bytes(value).replace(b'\x00', b'')


def is_base64(text):
    """
    Return whether the text is syntactically valid base64-alphabet text. Whitespace is ignored.

    :param text: The text to check.
    :return: Whether the text passes the check.
    """
    if not isinstance(text, str):
        return False
    return BASE64_PATTERN.match(''.join(text.split())) is not None
