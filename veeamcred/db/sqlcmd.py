"""
veeamcred.db.sqlcmd
===================

Queries against the products' SQL Server databases, run through the sqlcmd client on the target.
For documentation on sqlcmd's arguments, see:
    https://learn.microsoft.com/en-us/sql/tools/sqlcmd/sqlcmd-utility
"""


import logging


from ..abc.remote import RemoteExecutor
from ..exceptions import UnknownFailureError, verify_type
from ..strings import strip_nulls
from .parameters import ConnectionParameters


__author__ = 'Aaron Hosford'
__all__ = [
    'find_sql_client',
    'quote_argument',
    'is_client_error',
    'SQLCmdClient',
]


log = logging.getLogger(__name__)


SQLCMD = 'sqlcmd'
OSQL = 'osql'

SQLCMD_BANNER = 'SQL Server Command Line Tool'

# Output that starts with one of these is an error message from the client, not a result set.
CLIENT_ERROR_PREFIXES = ('sqlcmd: ', 'msg ')


def find_sql_client(executor):
    """
    Determine which SQL Server command line client is available on the target.

    :param executor: A veeamcred.abc.remote.RemoteExecutor.
    :return: 'sqlcmd', 'osql', or None.
    """
    verify_type(executor, RemoteExecutor)
    if SQLCMD_BANNER in (executor.execute_command('sqlcmd -?') or ''):
        return SQLCMD
    if SQLCMD_BANNER in (executor.execute_command('osql -?') or ''):
        return OSQL
    return None


def quote_argument(value):
    """
    Quote a value for the sqlcmd command line. Line breaks are dropped, since the whole command
    must fit on one line, and embedded double quotes are doubled.

    :param value: The value.
    :return: The quoted value.
    """
    verify_type(value, str)
    value = value.replace('\r', '').replace('\n', '')
    return '"%s"' % value.replace('"', '""')


def is_client_error(output):
    """Return whether the output of a query is an error message from the SQL client."""
    return strip_nulls(output or '').lstrip().lower().startswith(CLIENT_ERROR_PREFIXES)


class SQLCmdClient:
    """Runs queries with sqlcmd, producing headerless comma-delimited output."""

    def __init__(self, parameters, client=SQLCMD):
        verify_type(parameters, ConnectionParameters)
        verify_type(client, str, non_empty=True)
        self._parameters = parameters
        self._client = client

    @property
    def parameters(self):
        return self._parameters

    @property
    def client(self):
        return self._client

    def command(self, query):
        """
        Render the command line for a query.

        :param query: The SQL text.
        :return: The command line.
        """
        verify_type(query, str, non_empty=True)
        parameters = self._parameters
        if parameters.integrated:
            authentication = '-E'
        else:
            authentication = '-U %s -P %s' % (quote_argument(parameters.login.user),
                                              quote_argument(parameters.login.password))
        command = '%s -d %s -S %s %s -Q %s -h-1 -s"," -w 65535 -W -I' % (
            self._client,
            quote_argument(parameters.database),
            parameters.instance_path,
            authentication,
            quote_argument(query),
        )
        return command.replace('\r', '').replace('\n', '')

    def query(self, executor, query):
        """
        Run a query on the target and return its raw output.

        :param executor: A veeamcred.abc.remote.RemoteExecutor.
        :param query: The SQL text.
        :return: The query output.
        """
        verify_type(executor, RemoteExecutor)
        log.debug("Running query against %s on %s", self._parameters.database, self._parameters.instance_path)
        output = executor.execute_command(self.command(query)) or ''
        if is_client_error(output):
            raise UnknownFailureError(strip_nulls(output).strip())
        return output
