"""
veeamcred.abc.remote
====================

Interface definition for the remote executor, the channel through which every command is run on
the target host.
"""


import base64

from abc import ABCMeta, abstractmethod


from ..exceptions import verify_type


__author__ = 'Aaron Hosford'
__all__ = [
    "RemoteExecutor",
]


POWERSHELL_COMMAND = 'powershell.exe -NoProfile -NonInteractive -EncodedCommand %s'


class RemoteExecutor(metaclass=ABCMeta):
    """
    The RemoteExecutor class is an abstract base class for channels that run commands on the target
    host. Calls are synchronous. A failure of the channel itself must be raised as a
    veeamcred.exceptions.RemoteExecutionError; a command that ran but printed nothing returns an
    empty string.
    """

    @abstractmethod
    def execute_command(self, command):
        """
        Run a command line on the target and return its output.

        :param command: The command line.
        :return: The command's output, as a str.
        """
        raise NotImplementedError()

    @abstractmethod
    def read_file(self, path):
        """
        Read a file from the target.

        :param path: The path of the file on the target.
        :return: The file's content, as bytes.
        """
        raise NotImplementedError()

    @abstractmethod
    def file_exists(self, path):
        """
        Determine whether a file exists on the target.

        :param path: The path of the file on the target.
        :return: Whether the file exists.
        """
        raise NotImplementedError()

    def execute_powershell(self, script):
        """
        Run a PowerShell script on the target and return its raw output. The script is passed as
        an encoded command, so it needs no shell quoting.

        :param script: The PowerShell script.
        :return: The script's output, as a str.
        """
        verify_type(script, str, non_empty=True)
        encoded = base64.b64encode(script.encode('utf-16-le')).decode('ascii')
        return self.execute_command(POWERSHELL_COMMAND % encoded) or ''
