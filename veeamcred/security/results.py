"""
The three-way outcome of a decryption attempt.
"""


import collections
import enum


from ..exceptions import verify_type


__author__ = 'Aaron Hosford'
__all__ = [
    'Status',
    'DecryptResult',
]


class Status(enum.Enum):
    """Whether a decryption attempt produced a value, produced nothing, or failed outright."""

    VALUE = 'value'
    EMPTY = 'empty'
    ERROR = 'error'


class DecryptResult(collections.namedtuple('DecryptResult', 'status plaintext error')):
    """
    The outcome of decrypting a single secret. Only VALUE results carry a plaintext, and only ERROR
    results carry an error. EMPTY means the backend ran and returned nothing.
    """

    @classmethod
    def value(cls, plaintext):
        """A non-empty plaintext was recovered. An empty plaintext becomes an EMPTY result."""
        verify_type(plaintext, str)
        if not plaintext:
            return cls.empty()
        return cls(Status.VALUE, plaintext, None)

    @classmethod
    def empty(cls):
        """The backend produced nothing for this secret."""
        return cls(Status.EMPTY, None, None)

    @classmethod
    def failed(cls, error):
        """
        The secret could not be decrypted.

        :param error: The exception, or a message describing the failure.
        """
        if isinstance(error, str):
            error = ValueError(error)
        verify_type(error, Exception)
        return cls(Status.ERROR, None, error)

    @property
    def is_value(self):
        return self.status is Status.VALUE

    @property
    def is_empty(self):
        return self.status is Status.EMPTY

    @property
    def is_error(self):
        return self.status is Status.ERROR

    def __repr__(self):
        # Plaintexts stay out of reprs so they don't end up in logs by accident.
        if self.is_error:
            return '%s(%s, %r)' % (type(self).__name__, self.status.name, self.error)
        return '%s(%s)' % (type(self).__name__, self.status.name)
