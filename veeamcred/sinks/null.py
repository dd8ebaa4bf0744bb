"""
Bindings for silently dropping recovered loot.
"""


from ..abc.configurations import Configurable
from ..abc.sinks import LootSink
from ..configurations import ConfigManager
from ..exceptions import verify_type
from ..plugins import config_loader


__author__ = 'Aaron Hosford'
__all__ = [
    'NullSink',
]


@config_loader
class NullSink(LootSink, Configurable):
    """
    A null sink simply drops everything it is given. It's useful for export-only runs where the
    caller only cares about the returned report.
    """

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Load a class instance from the value of a config option.

        :param manager: A ConfigManager instance.
        :param value: The string value of the option.
        :return: A new instance of this class.
        """
        verify_type(manager, ConfigManager)
        verify_type(value, str)

        if value.strip().lower() not in ('', 'null', 'none'):
            raise ValueError("Unexpected value for a null sink: %r" % value)

        return cls(*args, **kwargs)

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
        return cls(*args, **kwargs)

    def store_credential(self, credential, service=None):
        pass

    def store_artifact(self, name, data, mime_type='text/csv', label=None, file_name=None):
        return None
