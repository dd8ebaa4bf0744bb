"""
veeamcred.plugins
=================

Named, case-insensitive registries of plugins. The one veeamcred uses is CONFIG_LOADERS, which maps
the names allowed in a config section's Type option to the functions and Configurable classes that
build the values.
"""


import warnings

from collections.abc import Mapping
from importlib.metadata import entry_points


from .exceptions import PluginExistsError, PluginNotFoundError, InvalidPluginError, verify_type


__author__ = 'Aaron Hosford'
__all__ = [
    'PluginGroup',
    'CONFIG_LOADERS',
    'load_plugins',
    'config_loader',
]


class PluginGroup(Mapping):
    """
    The plugins registered under one entry point group. Plugins can be registered by installed
    packages through their entry points, or at run time with register() or the plugin() decorator.
    Names are matched without regard to case.
    """

    def __init__(self, name, value_type=None):
        verify_type(name, str, non_empty=True)
        verify_type(value_type, type, allow_none=True)

        self._name = name
        self._value_type = value_type
        self._entries = {}  # Lower-cased name -> (registered name, plugin)

    @property
    def name(self):
        """The entry point group name."""
        return self._name

    def load(self, warn=True):
        """
        Register every plugin installed under this group's entry point name.

        :param warn: Whether to issue a warning for entry points that fail to load. Otherwise they
            are skipped silently.
        """
        for entry_point in entry_points(group=self._name):
            try:
                plugin = entry_point.load()
                self.register(entry_point.name, plugin)
            except Exception as exc:
                if warn:
                    warnings.warn("Could not load plugin %s from group %s: %s" %
                                  (entry_point.name, self._name, exc))

    def register(self, name, value):
        """
        Register a plugin under a name. Registering the same plugin twice is harmless; registering a
        different one under a taken name is an error.

        :param name: The name of the plugin.
        :param value: The plugin.
        """
        verify_type(name, str, non_empty=True)
        key = name.lower()
        if key in self._entries and self._entries[key][1] != value:
            raise PluginExistsError("Plugin name %s is already taken in group %s." % (name, self._name))
        if self._value_type is not None and not isinstance(value, self._value_type):
            raise InvalidPluginError("Plugin %s is not a/an %s." % (name, self._value_type.__name__))
        self._entries[key] = (name, value)

    def __getitem__(self, name):
        if not isinstance(name, str) or name.lower() not in self._entries:
            raise PluginNotFoundError(name)
        return self._entries[name.lower()][1]

    def __iter__(self):
        return (registered_name for registered_name, _ in self._entries.values())

    def __contains__(self, name):
        return isinstance(name, str) and name.lower() in self._entries

    def __len__(self):
        return len(self._entries)

    def get(self, name, default=None):
        verify_type(name, str, non_empty=True)
        entry = self._entries.get(name.lower())
        return default if entry is None else entry[1]

    def plugin(self, name=None, value=None):
        """
        Decorator for registering a plugin where it is defined. Used bare, the plugin is registered
        under its own __name__:

            @GROUP.plugin
            def some_plugin(value):
                ...

        Called with a string, the plugin is registered under that name instead:

            @GROUP.plugin('OtherName')
            class SomePlugin:
                ...

        :param name: The name to register under, or the plugin itself when used bare.
        :param value: The plugin, when calling this directly instead of decorating.
        :return: The plugin, or a decorator if only a name was given.
        """
        if name is not None and not isinstance(name, str):
            name, value = None, name

        if value is None:
            if name is None:
                raise TypeError("A plugin name or value is required.")

            def decorator(obj):
                self.register(name, obj)
                return obj

            return decorator

        self.register(value.__name__ if name is None else name, value)
        return value


CONFIG_LOADERS = PluginGroup('veeamcred.config_loader')


def load_plugins(warn=True):
    """
    Load the config loaders other packages have registered for veeamcred.

    A package registers a loader by listing it under the 'veeamcred.config_loader' entry point
    group in its setup.py. Each loader must be a function accepting a string, or a subclass of
    veeamcred.abc.configurations.Configurable. Registered loaders can then be named in the Type
    option of a config section, or passed by name to ConfigManager.load_option().
    """
    CONFIG_LOADERS.load(warn)


def config_loader(name=None, value=None):
    """
    Register a config loader function or Configurable class in CONFIG_LOADERS. Works the same way
    as PluginGroup.plugin():

        @config_loader
        class LogSink(LootSink):
            ...

        @config_loader('bool')
        def parse_bool(string):
            ...
    """
    return CONFIG_LOADERS.plugin(name, value)
