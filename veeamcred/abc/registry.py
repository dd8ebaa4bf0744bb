"""
veeamcred.abc.registry
======================

Interface definition for reading the target host's registry.
"""


from abc import ABCMeta, abstractmethod


__author__ = 'Aaron Hosford'
__all__ = [
    "RegistryReader",
]


class RegistryReader(metaclass=ABCMeta):
    """
    The RegistryReader class is an abstract base class for read-only access to the registry of the
    target host. Keys are written in the 'HKLM\\SOFTWARE\\...' form.
    """

    @abstractmethod
    def key_exists(self, key):
        """
        Determine whether a registry key exists.

        :param key: The full key path.
        :return: Whether the key exists.
        """
        raise NotImplementedError()

    @abstractmethod
    def get_value(self, key, name):
        """
        Read a value from a registry key.

        :param key: The full key path.
        :param name: The name of the value.
        :return: The value's data as a str, or None if the key or value does not exist.
        """
        raise NotImplementedError()
