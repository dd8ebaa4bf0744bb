"""
veeamcred.sinks.callbacks
=========================

Bindings for passing recovered loot to Python callbacks.
"""


from ..abc.configurations import Configurable
from ..abc.sinks import LootSink
from ..configurations import ConfigManager, load_global_function
from ..exceptions import verify_callable, verify_type
from ..plugins import config_loader


__author__ = 'Aaron Hosford'
__all__ = [
    'CallbackSink',
]


@config_loader
class CallbackSink(LootSink, Configurable):
    """
    A callback sink passes recovered credentials and artifacts to arbitrary Python callbacks. It
    allows us to wrap Python functions in the sink interface so we can easily interchange them.
    Either callback may be omitted, in which case that kind of loot is dropped.
    """

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Load a class instance from the value of a config option. The value names the credential
        callback.

        :param manager: A ConfigManager instance.
        :param value: The string value of the option.
        :return: A new instance of this class.
        """
        verify_type(manager, ConfigManager)
        verify_type(value, str, non_empty=True)

        return cls(*args, credential_callback=load_global_function(value), **kwargs)

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

        credential_callback = manager.load_option(section, 'Credential Function', load_global_function, None)
        artifact_callback = manager.load_option(section, 'Artifact Function', load_global_function, None)

        return cls(*args, credential_callback=credential_callback, artifact_callback=artifact_callback,
                   **kwargs)

    def __init__(self, credential_callback=None, artifact_callback=None):
        verify_callable(credential_callback, allow_none=True)
        verify_callable(artifact_callback, allow_none=True)

        self._credential_callback = credential_callback
        self._artifact_callback = artifact_callback

    @property
    def credential_callback(self):
        """The function called with each recovered credential."""
        return self._credential_callback

    @property
    def artifact_callback(self):
        """The function called with each artifact."""
        return self._artifact_callback

    def store_credential(self, credential, service=None):
        if self._credential_callback is not None:
            self._credential_callback(credential, service)

    def store_artifact(self, name, data, mime_type='text/csv', label=None, file_name=None):
        if self._artifact_callback is None:
            return None
        return self._artifact_callback(name, data, mime_type=mime_type, label=label, file_name=file_name)
