"""
Bindings for reporting recovered loot to Python logger objects.
"""


import logging


from ..abc.configurations import Configurable
from ..abc.sinks import LootSink
from ..configurations import ConfigManager
from ..exceptions import verify_type
from ..plugins import config_loader
from ..strings import parse_bool, parse_log_level, strip_nulls


__author__ = 'Aaron Hosford'
__all__ = [
    'LogSink',
]


@config_loader
class LogSink(LootSink, Configurable):
    """
    A log sink reports every recovered credential and artifact to a logger. Passwords are masked
    unless show_passwords is set.
    """

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Load a class instance from the value of a config option. The value has the form
        name[@level], e.g. 'veeamcred.loot@WARNING'.

        :param manager: A ConfigManager instance.
        :param value: The string value of the option.
        :return: A new instance of this class.
        """
        verify_type(manager, ConfigManager)
        verify_type(value, str, non_empty=True)

        if '@' in value:
            name, level = value.split('@')
            level = parse_log_level(level)
        else:
            name = value
            level = logging.INFO

        if not name or name.lower() == 'root':
            logger = logging.root
        else:
            logger = logging.getLogger(name)

        return cls(*args, logger=logger, level=level, **kwargs)

    @classmethod
    def load_config_section(cls, manager, section, *args, **kwargs):
        """
        Load a class instance from a config section.

        :param manager: A ConfigManager instance.
        :param section: The name of the section.
        :return: A new instance of this class.
        """
        verify_type(manager, ConfigManager)
        verify_type(section, str, non_empty=True)

        name = manager.load_option(section, 'Name', str, 'veeamcred.loot')
        level = manager.load_option(section, 'Level', 'log_level', logging.INFO)
        show_passwords = manager.load_option(section, 'Show Passwords', parse_bool, False)

        if not name or name.lower() == 'root':
            logger = logging.root
        else:
            logger = logging.getLogger(name)

        return cls(*args, logger=logger, level=level, show_passwords=show_passwords, **kwargs)

    def __init__(self, logger='veeamcred.loot', level=None, show_passwords=False):
        if isinstance(logger, str):
            verify_type(logger, str, non_empty=True)
            logger = logging.getLogger(logger)
        verify_type(logger, logging.Logger)

        if level is None:
            level = logging.INFO
        verify_type(level, int)
        verify_type(show_passwords, bool)

        self._logger = logger
        self._level = level
        self._show_passwords = show_passwords

    @property
    def logger(self):
        """The logger this sink reports to."""
        return self._logger

    @property
    def level(self):
        """The logging level this sink reports at."""
        return self._level

    @property
    def show_passwords(self):
        """Whether recovered passwords are written to the log in the clear."""
        return self._show_passwords

    def store_credential(self, credential, service=None):
        password = strip_nulls(credential.password) if self._show_passwords else '********'
        if service is None:
            self._logger.log(self._level, "Recovered Credential: %s", credential.realm or '')
        else:
            self._logger.log(self._level, "Recovered Credential: %s (%s/%s %s)", service.realm or '',
                             service.name, service.protocol, service.port)
        self._logger.log(self._level, "\tL: %s", credential.user or '')
        self._logger.log(self._level, "\tP: %s", password)

    def store_artifact(self, name, data, mime_type='text/csv', label=None, file_name=None):
        self._logger.log(self._level, "%s: %s (%s, %d bytes)", label or name, file_name or name, mime_type,
                         len(data))
        return None
