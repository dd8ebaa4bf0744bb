"""
veeamcred.logging
=================

Config-loadable wrappers for the standard logging handlers, formatters, and loggers, so a run's
logging can be set up from the veeamcred config file. CredentialDump.from_config() calls
configure_logging() with the same config manager before building the dump.
"""


import logging
import os
import sys

from abc import ABCMeta


from .abc.configurations import Configurable
from .configurations import ConfigManager
from .exceptions import OperationNotSupportedError, verify_type
from .plugins import config_loader
from .strings import to_list_of_strings


__author__ = 'Aaron Hosford'
__all__ = [
    'LogHandler',
    'LogFileHandler',
    'LogStreamHandler',
    'LogFormat',
    'Logger',
    'configure_logging',
]


# See https://docs.python.org/3/library/logging.config.html#logging.config.fileConfig


DEFAULT_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'

_STREAMS = {
    'stderr': lambda: sys.stderr,
    'stdout': lambda: sys.stdout,
}


class LogHandler(Configurable, metaclass=ABCMeta):

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

        format = manager.load_option(section, 'Format', LogFormat, None)
        verify_type(format, LogFormat, allow_none=True)
        if format is None:
            format = LogFormat(DEFAULT_FORMAT)

        level = manager.load_option(section, 'Level', 'log_level', logging.NOTSET)

        result = cls(*args, **kwargs)

        result.setFormatter(format)
        result.setLevel(level)

        return result


@config_loader
class LogFileHandler(LogHandler, logging.FileHandler):

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Load a class instance from the value of a config option.

        :param manager: A ConfigManager instance.
        :param value: The string value of the option.
        :return: A new instance of this class.
        """
        verify_type(value, str, non_empty=True)
        return cls(*args, filename=os.path.abspath(os.path.expanduser(value)), **kwargs)

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

        path = manager.load_option(section, 'Path', str)
        mode = manager.load_option(section, 'Mode', str, 'a')
        encoding = manager.load_option(section, 'Encoding', str, None)
        delay = manager.load_option(section, 'Delay', 'bool', False)

        return super().load_config_section(
            manager,
            section,
            *args,
            filename=os.path.abspath(os.path.expanduser(path)),
            mode=mode,
            encoding=encoding,
            delay=delay,
            **kwargs
        )

    def __init__(self, filename, mode='a', encoding=None, delay=False):
        Configurable.__init__(self)
        logging.FileHandler.__init__(self, filename, mode, encoding, delay)


@config_loader
class LogStreamHandler(LogHandler, logging.StreamHandler):

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Load a class instance from the value of a config option, either 'stderr' or 'stdout'.

        :param manager: A ConfigManager instance.
        :param value: The string value of the option.
        :return: A new instance of this class.
        """
        verify_type(value, str, non_empty=True)
        if value.strip().lower() not in _STREAMS:
            raise ValueError("Unknown stream: %r" % value)
        return cls(*args, stream=_STREAMS[value.strip().lower()](), **kwargs)

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

        stream = manager.load_option(section, 'Stream', str, 'stderr').strip().lower()
        if stream not in _STREAMS:
            raise ValueError("Unknown stream: %r" % stream)

        return super().load_config_section(
            manager,
            section,
            *args,
            stream=_STREAMS[stream](),
            **kwargs
        )

    def __init__(self, stream=None):
        Configurable.__init__(self)
        logging.StreamHandler.__init__(self, stream)


@config_loader
class LogFormat(Configurable, logging.Formatter):

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Load a class instance from the value of a config option.

        :param manager: A ConfigManager instance.
        :param value: The string value of the option.
        :return: A new instance of this class.
        """
        verify_type(value, str, non_empty=True)

        return cls(*args, fmt=value, **kwargs)

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

        format_string = manager.load_option(section, 'Format', str, None)
        date_format = manager.load_option(section, 'Date Format', str, None)
        style = manager.load_option(section, 'Style', str, '%')

        return cls(
            *args,
            fmt=format_string,
            datefmt=date_format,
            style=style,
            **kwargs
        )

    def __init__(self, fmt=None, datefmt=None, style='%'):
        Configurable.__init__(self)
        logging.Formatter.__init__(self, fmt, datefmt, style)


@config_loader
class Logger(Configurable, logging.Logger):

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Loggers can only be loaded from a section.
        """
        raise OperationNotSupportedError()

    @classmethod
    def load_config_section(cls, manager, section, *args, **kwargs):
        """
        Configure a logger from a config section. Note that the logger returned is the one
        registered with the logging module under the configured name, not an instance of this class.

        :param manager: A ConfigManager instance.
        :param section: The name of the section.
        :return: The configured logging.Logger.
        """
        verify_type(manager, ConfigManager)
        verify_type(section, str, non_empty=True)

        name = manager.load_option(section, 'Name', str)
        verify_type(name, str, non_empty=True)

        level = manager.load_option(section, 'Level', 'log_level', logging.NOTSET)

        handlers = []
        for handler_name in manager.load_option(section, 'Handlers', 'list', []):
            handler = manager.load_section(handler_name)
            verify_type(handler, LogHandler)
            handlers.append(handler)

        if name == 'root':
            result = logging.root
        else:
            result = logging.getLogger(name)
            result.propagate = manager.load_option(section, 'Propagate', 'bool', True)

        result.setLevel(level)

        for handler in handlers:
            if handler not in result.handlers:
                result.addHandler(handler)

        return result

    def __init__(self, name, level=logging.NOTSET):
        Configurable.__init__(self)
        logging.Logger.__init__(self, name, level)


def configure_logging(manager, section='Logging'):
    """
    Set up the loggers named in a config section's Loggers option. A missing section is not an
    error; logging is simply left as it is.

    :param manager: A ConfigManager instance.
    :param section: The name of the section listing the logger sections.
    :return: The list of configured loggers.
    """
    verify_type(manager, ConfigManager)
    verify_type(section, str, non_empty=True)

    if not manager.has_section(section):
        return []
    logger_sections = to_list_of_strings(manager.load_option(section, 'Loggers', str, ''))
    return [manager.load_section(logger_section, Logger) for logger_section in logger_sections]
