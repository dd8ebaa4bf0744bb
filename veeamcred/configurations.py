"""
Supports the automatic loading and configuration of compound objects, such as credential sinks and
log handlers, directly from a configuration file.
"""


import builtins
import configparser
import importlib
import keyword
import logging
import os
import re
import threading


from .exceptions import verify_type, verify_callable
from .plugins import CONFIG_LOADERS, config_loader


__author__ = 'Aaron Hosford'
__all__ = [
    "load_global_value",
    "load_global_function",
    "get_default_config_search_dirs",
    "iter_config_search_paths",
    "load_config",
    "ConfigManager",
    "get_veeamcred_config_manager",
]


log = logging.getLogger(__name__)


# Underscored because it should not be accessed directly.
_veeamcred_config_manager = None
_GLOBALS_LOCK = threading.RLock()


CONFIG_FILE_NAME_BASE = 'veeamcred'

CONFIG_EXTENSIONS = (
    '.ini',
    '.cfg',
    '.conf',
)


INTERPOLATION_ESCAPE = '$'
SECTION_OPTION_SEPARATOR = ':'
_REFERENCE_PATTERN = re.compile(r'\$(?:(\$)|\{([^{}]*)\})')
OBJECT_ESCAPE = '#'


@config_loader
def load_global_value(name):
    """
    Look up a module-level Python value by its dotted name, e.g. logging.warning. The longest
    importable module prefix is imported, and the remaining pieces are resolved as attributes.

    :param name: The dotted name.
    :return: The Python value referenced by that name.
    """
    verify_type(name, str, non_empty=True)
    pieces = name.strip().split('.')
    if not all(piece.isidentifier() and not keyword.iskeyword(piece) for piece in pieces):
        raise ValueError("Not a dotted Python name: %r" % name)

    with _GLOBALS_LOCK:
        for split in range(len(pieces), 0, -1):
            try:
                value = importlib.import_module('.'.join(pieces[:split]))
            except ImportError:
                continue
            break
        else:
            value, split = builtins, 0

        for piece in pieces[split:]:
            value = getattr(value, piece)
    return value


@config_loader
def load_global_function(name):
    """
    Look up a module-level Python callable by its dotted name.

    :param name: The dotted name.
    :return: The Python function referenced by that name.
    """
    function = load_global_value(name)
    verify_callable(function)
    return function


def get_default_config_search_dirs(file_name_base=CONFIG_FILE_NAME_BASE):
    """
    The directories searched for config files, most important first. The directory named by the
    <NAME>_CONFIG environment variable comes right after the working directory, and the packaged
    defaults come last. The directories are not required to exist.

    :param file_name_base: The name of the configuration file, minus the extension.
    :return: A list of directory paths.
    """
    dirs = ['.']
    override = os.environ.get(file_name_base.upper() + '_CONFIG')
    if override:
        dirs.append(override)
    dirs.extend([
        '~',
        os.path.join('~', '.config', file_name_base),
        os.path.join('/etc', file_name_base),
        os.path.dirname(os.path.abspath(__file__)),
    ])
    return dirs


def _normalize_dir(path):
    return os.path.normcase(os.path.abspath(os.path.expandvars(os.path.expanduser(path))))


def iter_config_search_paths(file_name_base, dirs=None, extensions=None):
    """
    Yield the config files that exist, most important first. Each file is yielded at most once,
    however many times its directory is listed.

    :param file_name_base: The name of the config file, minus the extension.
    :param dirs: The directories in which to search.
    :param extensions: The file name extensions to check for.
    :return: An iterator over the config file paths.
    """
    seen = set()
    for directory in get_default_config_search_dirs(file_name_base) if dirs is None else dirs:
        directory = _normalize_dir(directory)
        for extension in CONFIG_EXTENSIONS if extensions is None else extensions:
            path = os.path.join(directory, file_name_base + extension)
            if path in seen:
                continue
            seen.add(path)
            if os.path.isfile(path):
                yield path


def load_config(file_name_base=CONFIG_FILE_NAME_BASE, dirs=None, extensions=None, error=False):
    """
    Read every config file found by iter_config_search_paths() into one parser. More important
    files are read last so their options win.

    :param file_name_base: The name of the config file(s), minus the extension.
    :param dirs: The directories in which to search.
    :param extensions: The file name extensions to check for.
    :param error: Whether a file that fails to parse is an error. Otherwise it is logged and
        skipped.
    :return: A configparser.ConfigParser instance containing the loaded parameters.
    """
    config = configparser.ConfigParser(interpolation=None)
    for path in reversed(list(iter_config_search_paths(file_name_base, dirs, extensions))):
        try:
            config.read(path)
        except configparser.Error:
            if error:
                raise
            log.warning("Skipping unreadable config file %s.", path, exc_info=True)
    return config


class ConfigManager:
    """
    A ConfigManager reads options from a parsed config file and turns them into objects: sinks,
    log handlers, credential dumps, or any other type with a registered config loader. Objects
    are built once per section (or option) and loader, and shared after that.
    """

    def __init__(self, config, loaders=None):
        if isinstance(config, str):
            if os.path.isfile(config):
                path = config
                config = configparser.ConfigParser(interpolation=None)
                config.read(path)
            else:
                config = load_config(file_name_base=config)
        elif isinstance(config, dict):
            content = config
            config = configparser.ConfigParser(interpolation=None)
            config.read_dict(content)
        verify_type(config, configparser.ConfigParser)

        self._config = config
        self._loaders = CONFIG_LOADERS if loaders is None else loaders
        self._loaded_instances = {}

        self._config_lock = threading.RLock()  # Guards the parser
        self._instance_lock = threading.RLock()  # Guards the instance cache

    def has_loader(self, name):
        """
        Return whether a config loader is registered under the name.

        :param name: The loader name, e.g. 'bool' or 'LogSink'.
        :return: Whether the loader is available.
        """
        verify_type(name, str, non_empty=True)
        return name in self._loaders

    def get_loader(self, name, default=NotImplemented):
        """
        Look up a config loader by name.

        :param name: The loader name.
        :param default: Returned if no such loader is registered. If omitted, a KeyError is raised
            instead.
        :return: The loader.
        """
        verify_type(name, str, non_empty=True)
        if name in self._loaders:
            return self._loaders[name]
        if default is NotImplemented:
            raise KeyError(name)
        return default

    def has_section(self, section):
        """
        Determine whether a section exists. The DEFAULT section always does.

        :param section: The name of the section.
        :return: Whether the section exists.
        """
        verify_type(section, str, non_empty=True)
        if section == 'DEFAULT':
            return True
        with self._config_lock:
            return self._config.has_section(section)

    def get_section(self, section, default=NotImplemented):
        """
        Return a copy of a section's options as a dictionary. Option names are lower case.

        :param section: The name of the section.
        :param default: Returned if the section does not exist. If omitted, a KeyError is raised
            instead.
        :return: A dictionary of the section's raw option values.
        """
        verify_type(section, str, non_empty=True)
        with self._config_lock:
            if section == 'DEFAULT' or self._config.has_section(section):
                return dict(self._config[section])
        if default is NotImplemented:
            raise KeyError(section)
        return default

    def set_option(self, section, option, value):
        """
        Set the value of an option, creating the section if necessary.

        :param section: The name of the section.
        :param option: The name of the option.
        :param value: The string value of the option.
        """
        verify_type(section, str, non_empty=True)
        verify_type(option, str, non_empty=True)
        verify_type(value, str)
        with self._config_lock:
            if section != 'DEFAULT' and not self._config.has_section(section):
                self._config.add_section(section)
            self._config.set(section, option, value)

    def has_option(self, section, option):
        """
        Determine whether an option exists in a section.

        :param section: The name of the section.
        :param option: The name of the option.
        :return: Whether the option exists.
        """
        verify_type(section, str, non_empty=True)
        verify_type(option, str, non_empty=True)
        with self._config_lock:
            return self._config.has_option(section, option)

    def get_options(self, section):
        """
        Return the names of the options in a section, in lower case.

        :param section: The name of the section.
        :return: A set of option names, empty if the section does not exist.
        """
        verify_type(section, str, non_empty=True)
        with self._config_lock:
            if not self._config.has_section(section):
                return set()
            return set(self._config[section])

    def interpolate(self, value, default_section=None):
        """
        Expand references in an option value. A reference has the form ${section:option}, or
        ${option} for an option in the default section. A doubled $$ is a literal $.

        :param value: The raw option value.
        :param default_section: The section searched by references that don't name one.
        :return: The expanded value.
        """
        verify_type(value, str)
        verify_type(default_section, str, non_empty=True, allow_none=True)

        def expand(match):
            if match.group(1):
                return INTERPOLATION_ESCAPE
            reference = match.group(2)
            if SECTION_OPTION_SEPARATOR in reference:
                section, option = reference.split(SECTION_OPTION_SEPARATOR, 1)
            elif default_section is None:
                raise KeyError(reference)
            else:
                section, option = default_section, reference
            return self.get_option(section.strip(), option.strip())

        # A $ that starts neither form, or a reference that is never closed, is left as is.
        return _REFERENCE_PATTERN.sub(expand, value)

    def get_option(self, section, option, default=NotImplemented, raw=False):
        """
        Return the string value of an option.

        :param section: The name of the section.
        :param option: The name of the option.
        :param default: Returned if the option does not exist. If omitted, a KeyError naming the
            missing section or option is raised instead.
        :param raw: If True, references in the value are not expanded.
        :return: The option's value.
        """
        verify_type(section, str, non_empty=True)
        verify_type(option, str, non_empty=True)
        with self._config_lock:
            if self._config.has_option(section, option):
                value = self._config[section][option]
                return value if raw else self.interpolate(value, section)
        if default is not NotImplemented:
            return default
        if self.has_section(section):
            raise KeyError(option)
        raise KeyError(section)

    def _resolve_loader(self, loader):
        if isinstance(loader, str):
            if self.has_loader(loader):
                return self.get_loader(loader)
            return load_global_function(loader)
        return loader

    def _load_reference(self, reference, loader=None):
        assert not reference.startswith(OBJECT_ESCAPE)
        if SECTION_OPTION_SEPARATOR in reference:
            section, option = reference.split(SECTION_OPTION_SEPARATOR)
            return self.load_option(section, option, loader)
        return self.load_section(reference, loader)

    def _cached(self, cache_key, build):
        with self._instance_lock:
            if cache_key not in self._loaded_instances:
                self._loaded_instances[cache_key] = build()
            return self._loaded_instances[cache_key]

    def load_value(self, value, loader=None):
        """
        Load an object from a string that did not come from an option. A value starting with the
        object escape (#) refers to a section, or a section:option pair, to load instead; a doubled
        escape (##) stands for a literal #.

        :param value: The string to load.
        :param loader: The loader to apply: a function, a Configurable subclass, or the name of a
            registered loader. Defaults to str.
        :return: The loaded object.
        """
        verify_type(value, str)

        if value.startswith(OBJECT_ESCAPE):
            value = value[1:]
            if not value.startswith(OBJECT_ESCAPE):
                return self._load_reference(value, loader)

        loader = self._resolve_loader(loader) or str
        if hasattr(loader, 'load_config_value'):
            return loader.load_config_value(self, value)
        return loader(value)

    def load_option(self, section, option, loader=None, default=NotImplemented):
        """
        Load an object from an option. The value follows the same rules as load_value(): a leading
        # makes it a reference to another section or option. The result is cached per section,
        option, and loader.

        :param section: The name of the section.
        :param option: The name of the option.
        :param loader: The loader to apply: a function, a Configurable subclass, or the name of a
            registered loader. Defaults to str.
        :param default: Returned if the option does not exist. If omitted, a KeyError is raised
            instead.
        :return: The loaded object.
        """
        verify_type(section, str, non_empty=True)
        verify_type(option, str, non_empty=True)

        try:
            content = self.get_option(section, option)
        except KeyError:
            if default is NotImplemented:
                raise
            return default

        loader = self._resolve_loader(loader)

        if content.startswith(OBJECT_ESCAPE):
            content = content[1:]
            if not content.startswith(OBJECT_ESCAPE):
                return self._load_reference(content, loader)

        if loader is None:
            loader = str

        if hasattr(loader, 'load_config_value'):
            return self._cached((section, option, loader), lambda: loader.load_config_value(self, content))
        return self._cached((section, option, loader), lambda: loader(content))

    def load_section(self, section, loader=None, default=NotImplemented):
        """
        Load an object from a whole section. Without an explicit loader, the section's Type option
        names one, and a section with neither is returned as a dictionary. The result is cached per
        section and loader.

        :param section: The name of the section.
        :param loader: The loader to apply: a function, a Configurable subclass, or the name of a
            registered loader.
        :param default: Returned if the section does not exist. If omitted, a KeyError is raised
            instead.
        :return: The loaded object.
        """
        verify_type(section, str, non_empty=True)

        try:
            content = self.get_section(section)
        except KeyError:
            if default is NotImplemented:
                raise
            return default

        if loader is None:
            loader = self.load_value(content['type']) if 'type' in content else dict
        loader = self._resolve_loader(loader)

        if hasattr(loader, 'load_config_section'):
            return self._cached((section, None, loader), lambda: loader.load_config_section(self, section))
        return self._cached((section, None, loader), lambda: loader(content))


def get_veeamcred_config_manager(error=False, refresh=False):
    """
    Get the configuration manager for the veeamcred package.

    :param error: Whether to raise exceptions when the parser cannot read a config file.
    :param refresh: Whether to reload the configuration information from disk.
    :return: A ConfigManager instance which can be used to load the veeamcred config settings.
    """
    with _GLOBALS_LOCK:
        global _veeamcred_config_manager
        if refresh or _veeamcred_config_manager is None:
            config = load_config(CONFIG_FILE_NAME_BASE, error=error)
            _veeamcred_config_manager = ConfigManager(config)
        assert isinstance(_veeamcred_config_manager, ConfigManager)
        return _veeamcred_config_manager
