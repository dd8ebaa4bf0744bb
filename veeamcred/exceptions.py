"""
veeamcred.exceptions
====================

Exception definitions for veeamcred.
"""


import enum


class Failure(enum.Enum):
    """Classification of a failed run."""

    NOT_FOUND = 'not-found'  # A prerequisite executable or product is missing.
    BAD_CONFIG = 'bad-config'  # Connection parameters or input files are malformed or missing.
    NO_TARGET = 'no-target'  # No usable product or data was detected.
    UNKNOWN = 'unknown'  # Anything else, e.g. SQL client errors or unparsable output.


class VeeamCredException(Exception):
    """Base class for all exceptions defined by veeamcred."""


class ConfigurationError(VeeamCredException):
    """A config file or section could not be turned into the requested object."""


class InvalidConfigurationError(ConfigurationError):
    """A config option holds a value of the wrong kind."""


class PluginError(VeeamCredException):
    """A config loader plugin could not be registered or found."""


class PluginExistsError(KeyError, PluginError):
    """A different plugin is already registered under that name."""


class InvalidPluginError(ValueError, PluginError):
    """The plugin is not of the type its group requires."""


class PluginNotFoundError(KeyError, PluginError):
    """No plugin is registered under that name."""


class OperationNotSupportedError(NotImplementedError, VeeamCredException):
    """The object cannot be built or used this way, e.g. from a single config value."""


class TableError(VeeamCredException):
    """Base class for tabular data errors."""


class ParseError(ValueError, TableError):
    """The text could not be parsed into a table."""


class ColumnNotFoundError(KeyError, TableError):
    """The table has no column by that name."""


class SecurityError(VeeamCredException):
    """Base class for errors handling protected secrets."""


class CryptographyError(SecurityError):
    """A cipher operation failed."""


class EncryptionError(CryptographyError):
    """A value could not be encrypted with the legacy key."""


class DecryptionError(CryptographyError):
    """A ciphertext could not be decrypted."""


class RemoteExecutionError(ConnectionError, VeeamCredException):
    """The remote executor could not run the command. Always fatal to the run."""


class RunFailedError(VeeamCredException):
    """
    Base class for errors that abort a credential dump run. Each subclass carries the Failure
    classification used to report the run's outcome.
    """

    failure = Failure.UNKNOWN

    def __str__(self):
        message = super().__str__()
        return '[%s] %s' % (self.failure.value, message) if message else '[%s]' % self.failure.value


class NotFoundError(RunFailedError):
    """A required executable or product could not be found."""

    failure = Failure.NOT_FOUND


class BadConfigError(RunFailedError):
    """Connection parameters or input data are malformed or missing."""

    failure = Failure.BAD_CONFIG


class NoTargetError(RunFailedError):
    """No usable product, record, or row was found."""

    failure = Failure.NO_TARGET


class UnknownFailureError(RunFailedError):
    """The run failed for a reason not otherwise classified."""

    failure = Failure.UNKNOWN


def verify_type(obj, typ, *, non_empty=False, allow_none=False):
    """
    Check an argument's type, raising TypeError on a mismatch, or ValueError if it must be
    non-empty and is not.

    :param obj: The object to check.
    :param typ: The expected type (or a tuple of types).
    :param non_empty: If True, require the object to evaluate as True in a boolean context. (Default
        False)
    :param allow_none: If True, allow the object to be None. (Default False)
    """
    if allow_none and obj is None:
        return
    if not isinstance(obj, typ):
        raise TypeError("Expected %r, got %r." % (typ, type(obj)))
    if non_empty and not obj:
        raise ValueError(obj)


def verify_callable(obj, *, allow_none=False):
    """
    Check that an argument is callable, raising TypeError if it is not.

    :param obj: The object to check.
    :param allow_none: If True, allow the object to be None. (Default False)
    """
    if allow_none and obj is None:
        return
    if not callable(obj):
        raise TypeError("Expected a callable, got %r." % (obj,))
