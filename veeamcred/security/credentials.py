"""
Implements the Credential class, for recovered login credentials, and the Service class, which
describes where a credential is valid.
"""


import collections


from ..exceptions import verify_type


__author__ = 'Aaron Hosford'
__all__ = [
    'Credential',
    'Service',
    'MSSQL_PORT',
    'VEEAM_PORT',
]


MSSQL_PORT = 1433
VEEAM_PORT = 6160


class Service(collections.namedtuple('Service', 'name port protocol address realm')):
    """
    The service a recovered credential belongs to. The realm identifies the resource within the
    service, e.g. the SQL instance or the Veeam credential description.
    """

    def __new__(cls, name, port, protocol='tcp', address=None, realm=None):
        verify_type(name, str, non_empty=True)
        verify_type(port, int)
        verify_type(protocol, str, non_empty=True)
        verify_type(address, str, allow_none=True)
        verify_type(realm, str, allow_none=True)
        return super().__new__(cls, name, port, protocol, address, realm)


class Credential:
    """
    A username and password recovered from the target, with an optional realm naming the resource
    the login is for. Empty strings are stored as None.
    """

    __slots__ = ('_user', '_password', '_realm')

    def __init__(self, user, password, realm=None):
        verify_type(user, str, allow_none=True)
        verify_type(password, str, allow_none=True)
        verify_type(realm, str, allow_none=True)

        self._user = user or None
        self._password = password or None
        self._realm = realm or None

    @property
    def user(self):
        return self._user

    @property
    def password(self):
        return self._password

    @property
    def realm(self):
        return self._realm

    @property
    def is_complete(self):
        """Whether both a user and a password are present."""
        return self._user is not None and self._password is not None

    def __bool__(self):
        return self._user is not None or self._password is not None

    def _key(self):
        return self._user, self._password, self._realm

    def __eq__(self, other):
        if not isinstance(other, Credential):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __str__(self):
        # The password never appears in str() or repr().
        if self._realm:
            return '%s@%s' % (self._user, self._realm)
        return str(self._user)

    def __repr__(self):
        return '%s(%r, %s, %r)' % (type(self).__name__, self._user,
                                   "'********'" if self._password else None, self._realm)
