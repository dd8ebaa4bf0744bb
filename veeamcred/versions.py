"""
veeamcred.versions
==================

Dotted-numeric product versions, as reported by the file version resource of a product binary.
"""


import functools
import re


from .exceptions import verify_type


__author__ = 'Aaron Hosford'
__all__ = [
    'Version',
    'parse_version',
]


_VERSION_PATTERN = re.compile(r'^\d+(\.\d+)*$')


@functools.total_ordering
class Version:
    """
    A comparable dotted-numeric version. Trailing zero components are insignificant, so 11.0 and
    11.0.0 compare equal. The empty version, 0, is false in a boolean context.
    """

    @classmethod
    def parse(cls, text):
        """
        Parse a version string such as '11.0.1.1261'. Surrounding whitespace and NUL characters are
        ignored, and an empty string parses as version 0.

        :param text: The version string.
        :return: A Version instance.
        """
        verify_type(text, str)
        text = text.replace('\x00', '').strip()
        if not text:
            return cls(())
        if not _VERSION_PATTERN.match(text):
            raise ValueError("Malformed version string: %r" % text)
        return cls(int(piece) for piece in text.split('.'))

    def __init__(self, components):
        components = tuple(components)
        for component in components:
            verify_type(component, int)
            if component < 0:
                raise ValueError(components)
        self._components = components

    @property
    def components(self):
        """The numeric components, as given."""
        return self._components

    def _key(self):
        key = list(self._components)
        while key and key[-1] == 0:
            key.pop()
        return tuple(key)

    def __eq__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other):
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self):
        return hash(self._key())

    def __bool__(self):
        return bool(self._key())

    def __str__(self):
        return '.'.join(str(component) for component in self._components) or '0'

    def __repr__(self):
        return type(self).__name__ + '(' + repr(str(self)) + ')'


def parse_version(text):
    """
    Parse a version string, treating anything that does not yield a positive version as absent.

    :param text: The version string, or None.
    :return: A Version instance greater than 0, or None.
    """
    if not isinstance(text, str):
        return None
    try:
        version = Version.parse(text)
    except ValueError:
        return None
    return version if version else None
