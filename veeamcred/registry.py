"""
veeamcred.registry
==================

Registry access on the target host through PowerShell, for executors that have no native registry
channel.
"""


import logging


from .abc.registry import RegistryReader
from .abc.remote import RemoteExecutor
from .exceptions import verify_type
from .strings import strip_nulls


__author__ = 'Aaron Hosford'
__all__ = [
    'to_provider_path',
    'quote_literal',
    'PowerShellRegistry',
]


log = logging.getLogger(__name__)


_HIVES = {
    'HKLM': 'HKLM:',
    'HKEY_LOCAL_MACHINE': 'HKLM:',
    'HKCU': 'HKCU:',
    'HKEY_CURRENT_USER': 'HKCU:',
}

_KEY_EXISTS_SCRIPT = "if (Test-Path -LiteralPath %s) {'True'} else {'False'}"
_GET_VALUE_SCRIPT = "try {[string](Get-ItemPropertyValue -LiteralPath %s -Name %s -ErrorAction Stop)} catch {''}"


def to_provider_path(key):
    """
    Convert a key in 'HKLM\\SOFTWARE\\...' form into a PowerShell registry provider path.

    :param key: The key path.
    :return: The provider path, e.g. 'HKLM:\\SOFTWARE\\...'.
    """
    verify_type(key, str, non_empty=True)
    hive, _, rest = key.partition('\\')
    hive = hive.rstrip(':').upper()
    if hive not in _HIVES:
        raise ValueError("Unsupported registry hive: %r" % hive)
    return _HIVES[hive] + '\\' + rest


def quote_literal(text):
    """
    Quote a value as a single-quoted PowerShell string literal.

    :param text: The value.
    :return: The literal, including quotes.
    """
    verify_type(text, str)
    return "'%s'" % text.replace("'", "''")


class PowerShellRegistry(RegistryReader):
    """Reads the target's registry by running PowerShell through a remote executor."""

    def __init__(self, executor):
        verify_type(executor, RemoteExecutor)
        self._executor = executor

    @property
    def executor(self):
        return self._executor

    def key_exists(self, key):
        script = _KEY_EXISTS_SCRIPT % quote_literal(to_provider_path(key))
        return strip_nulls(self._executor.execute_powershell(script)).strip().lower() == 'true'

    def get_value(self, key, name):
        verify_type(name, str, non_empty=True)
        script = _GET_VALUE_SCRIPT % (quote_literal(to_provider_path(key)), quote_literal(name))
        value = strip_nulls(self._executor.execute_powershell(script)).strip()
        if not value:
            log.debug("No value %s under %s", name, key)
            return None
        return value
