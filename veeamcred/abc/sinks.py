"""
Interface definition for loot sinks, the destinations for recovered credentials and the table
artifacts produced along the way.
"""


import datetime
import re

from abc import ABCMeta, abstractmethod


__author__ = 'Aaron Hosford'
__all__ = [
    'LootSink',
]


class LootSink(metaclass=ABCMeta):
    """
    A loot sink receives recovered credentials, together with a description of the service they
    belong to, and binary or text artifacts such as exported and decrypted tables.
    """

    @staticmethod
    def default_file_name(name, mime_type, time=None):
        """
        Build a file name for an artifact that was stored without one.

        :param name: The artifact name, e.g. 'veeam_vbr_enc'.
        :param mime_type: The artifact's MIME type.
        :param time: The time stamp to embed. Defaults to now.
        :return: A file name that is safe on any file system.
        """
        if time is None:
            time = datetime.datetime.now()
        extension = {
            'text/csv': '.csv',
            'text/plain': '.txt',
            'application/json': '.json',
        }.get(mime_type, '.bin')
        safe_name = re.sub(r'[^-\w.]', '_', name)
        return '%s_%s%s' % (time.strftime('%Y%m%d%H%M%S'), safe_name, extension)

    @abstractmethod
    def store_credential(self, credential, service=None):
        """
        Store a recovered credential.

        :param credential: A veeamcred.security.credentials.Credential instance.
        :param service: An optional veeamcred.security.credentials.Service describing where the
            credential is valid.
        :return: None
        """
        raise NotImplementedError()

    @abstractmethod
    def store_artifact(self, name, data, mime_type='text/csv', label=None, file_name=None):
        """
        Store an artifact.

        :param name: The artifact type name, e.g. 'veeam_vbr_dec'.
        :param data: The artifact content, as str or bytes.
        :param mime_type: The MIME type of the content.
        :param label: A human-readable description of the artifact.
        :param file_name: The preferred file name for the artifact.
        :return: A reference to the stored artifact (for example its path), or None.
        """
        raise NotImplementedError()
