"""
veeamcred.sinks.files
=====================

Bindings for saving recovered loot to a local directory.
"""


import datetime
import logging
import os
import threading


from ..abc.configurations import Configurable
from ..abc.sinks import LootSink
from ..configurations import ConfigManager
from ..exceptions import verify_type
from ..plugins import config_loader
from ..strings import strip_nulls
from ..tables import Table


__author__ = 'Aaron Hosford'
__all__ = [
    'DirectorySink',
    'CREDENTIAL_HEADERS',
]


log = logging.getLogger(__name__)


CREDENTIAL_FILE_NAME = 'credentials.csv'
CREDENTIAL_HEADERS = ('Service', 'Address', 'Port', 'Protocol', 'Realm', 'Username', 'Password')


@config_loader
class DirectorySink(LootSink, Configurable):
    """
    A directory sink writes each artifact to its own file in a directory, and appends each
    credential as a row of the credentials.csv file in the same directory.
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
        verify_type(value, str, non_empty=True)

        return cls(*args, path=value, **kwargs)

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
        encoding = manager.load_option(section, 'Encoding', str, 'utf-8')

        return cls(*args, path=path, encoding=encoding, **kwargs)

    def __init__(self, path, encoding='utf-8'):
        verify_type(path, str, non_empty=True)
        verify_type(encoding, str, non_empty=True)

        path = os.path.abspath(os.path.expanduser(path))
        os.makedirs(path, exist_ok=True)

        self._path = path
        self._encoding = encoding
        self._lock = threading.Lock()

    @property
    def path(self):
        """The directory loot is written to."""
        return self._path

    @property
    def credential_path(self):
        """The file credentials are appended to."""
        return os.path.join(self._path, CREDENTIAL_FILE_NAME)

    def store_credential(self, credential, service=None):
        table = Table(CREDENTIAL_HEADERS)
        table.append_row({
            'Service': service.name if service else None,
            'Address': service.address if service else None,
            'Port': service.port if service else None,
            'Protocol': service.protocol if service else None,
            'Realm': (service.realm if service else None) or credential.realm,
            'Username': strip_nulls(credential.user),
            'Password': strip_nulls(credential.password),
        })

        with self._lock:
            new_file = not os.path.isfile(self.credential_path)
            with open(self.credential_path, 'a', encoding=self._encoding, errors='surrogateescape',
                      newline='') as file:
                file.write(table.serialize(include_headers=new_file))

    def store_artifact(self, name, data, mime_type='text/csv', label=None, file_name=None):
        verify_type(name, str, non_empty=True)
        verify_type(data, (str, bytes))

        if file_name is None:
            file_name = self.default_file_name(name, mime_type)
        else:
            stamp = datetime.datetime.now().strftime('%Y%m%d%H%M%S')
            file_name = '%s_%s_%s' % (stamp, name, os.path.basename(file_name))
        path = os.path.join(self._path, file_name)

        if isinstance(data, str):
            data = data.encode(self._encoding, 'surrogateescape')

        with self._lock:
            with open(path, 'wb') as file:
                file.write(data)

        log.info("%s saved to %s", label or name, path)
        return path
