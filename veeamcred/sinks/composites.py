"""
Bindings for sending recovered loot to multiple sinks.
"""


import logging
import re


from ..abc.configurations import Configurable
from ..abc.sinks import LootSink
from ..configurations import ConfigManager
from ..exceptions import verify_type
from ..plugins import config_loader
from ..strings import parse_bool, to_list_of_strings


__author__ = 'Aaron Hosford'
__all__ = [
    'CompositeSink',
]


log = logging.getLogger(__name__)


# Component sinks are listed in options named Sink 1, Sink 2, etc.
SINK_OPTION_PATTERN = re.compile(r'^sink\s+(\d+)$', re.IGNORECASE)


@config_loader
class CompositeSink(LootSink, Configurable):
    """
    A composite sink passes everything it receives to each of several sinks, in order. The
    reference returned for an artifact is the first one any sink returned.
    """

    @classmethod
    def load_config_value(cls, manager, value, *args, **kwargs):
        """
        Load a class instance from the value of a config option.

        :param manager: A ConfigManager instance.
        :param value: The string value of the option, a list of section names.
        :return: A new instance of this class.
        """
        verify_type(manager, ConfigManager)
        verify_type(value, str, non_empty=True)

        sinks = [manager.load_section(sink_name) for sink_name in to_list_of_strings(value)]

        return cls(*args, sinks=sinks, **kwargs)

    @classmethod
    def load_config_section(cls, manager, section, *args, **kwargs):
        """
        Load a class instance from a config section. Component sinks are given by options named
        'Sink 1', 'Sink 2', etc.

        :param manager: A ConfigManager instance.
        :param section: The name of the section.
        :return: A new instance of this class.
        """
        verify_type(manager, ConfigManager)
        verify_type(section, str, non_empty=True)

        numbered = []
        for option_name in manager.get_options(section):
            match = SINK_OPTION_PATTERN.match(option_name)
            if match:
                numbered.append((int(match.group(1)), option_name))
        sinks = [manager.load_option(section, option_name) for _, option_name in sorted(numbered)]

        propagate_errors = manager.load_option(section, 'Propagate Errors', parse_bool, True)

        return cls(*args, sinks=sinks, propagate_errors=propagate_errors, **kwargs)

    def __init__(self, sinks, propagate_errors=True):
        sinks = tuple(sinks)
        for sink in sinks:
            verify_type(sink, LootSink)
        verify_type(propagate_errors, bool)

        self._sinks = sinks
        self._propagate_errors = propagate_errors

    @property
    def sinks(self):
        """The sinks this composite sink is composed of."""
        return self._sinks

    @property
    def propagate_errors(self):
        """
        Whether errors from the component sinks propagate back to the caller. Remaining sinks are
        still given the loot before the error propagates, and only the first error propagates.
        """
        return self._propagate_errors

    def _dispatch(self, method_name, *args, **kwargs):
        first_exc = None
        first_result = None
        for sink in self._sinks:
            try:
                result = getattr(sink, method_name)(*args, **kwargs)
            except Exception as exc:
                log.exception("Error in sink %r:", sink)
                if first_exc is None and self._propagate_errors:
                    first_exc = exc
            else:
                if first_result is None:
                    first_result = result
        if first_exc is not None:
            raise first_exc
        return first_result

    def store_credential(self, credential, service=None):
        self._dispatch('store_credential', credential, service)

    def store_artifact(self, name, data, mime_type='text/csv', label=None, file_name=None):
        return self._dispatch('store_artifact', name, data, mime_type=mime_type, label=label,
                              file_name=file_name)
