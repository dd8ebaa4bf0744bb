"""
In-memory stand-ins for a Windows host running Veeam, for use in tests.
"""


import base64
import itertools
import re


from veeamcred.abc.registry import RegistryReader
from veeamcred.abc.remote import POWERSHELL_COMMAND, RemoteExecutor
from veeamcred.abc.sinks import LootSink
from veeamcred.exceptions import RemoteExecutionError
from veeamcred.security.dpapi import TextEncoding


__author__ = 'Aaron Hosford'


SQLCMD_HELP = 'Microsoft (R) SQL Server Command Line Tool\r\nVersion 15.0.2000.5 NT\r\n'

_ENCODED_PREFIX = POWERSHELL_COMMAND % ''
_UNPROTECT_PAYLOADS = re.compile(r"@\((.*)\)\|ForEach-Object")
_UNPROTECT_ENTROPY = re.compile(r"FromBase64String\('([^']*)'\), 'LocalMachine'")
_GET_ITEM_PATH = re.compile(r"^\(Get-Item -Path '((?:[^']|'')*)'\)\.VersionInfo\.ProductVersion$")
_LITERAL = re.compile(r"'((?:[^']|'')*)'")
_DATABASE = re.compile(r'-d "((?:[^"]|"")*)"')


class FakeRegistry(RegistryReader):
    """A registry held in a dictionary of {key: {value name: data}}. Key lookup ignores case."""

    def __init__(self, keys=None):
        self.keys = {}
        for key, values in (keys or {}).items():
            self.set_key(key, values)

    def set_key(self, key, values=None):
        self.keys[key.lower()] = dict(values or {})

    def key_exists(self, key):
        return key.lower() in self.keys

    def get_value(self, key, name):
        value = self.keys.get(key.lower(), {}).get(name)
        return None if value is None else str(value)


class FakeHost(RemoteExecutor):
    """
    A remote executor that behaves like a Veeam server, well enough for the scripts and commands
    veeamcred sends. Secrets "protected" with protect() can be unprotected through the DPAPI
    scripts, given the same entropy.
    """

    BLANK_BLOB = base64.b64encode(b'fake-dpapi-blank').decode('ascii')

    def __init__(self, hostname='VEEAMSRV', registry=None):
        self.hostname = hostname
        self.registry = registry if registry is not None else FakeRegistry()
        self.files = {}
        self.versions = {}
        self.entropy = None
        self.sqlcmd = True
        self.databases = {}
        self.vault = {(self.BLANK_BLOB, None): b''}
        self.commands = []
        self.scripts = []
        self.fail = False
        self.protect_output = None
        self._counter = itertools.count(1)

    # Helpers for setting up scenarios

    def protect(self, plaintext, encoding=TextEncoding.ASCII, entropy=None):
        """Register a secret and return its base64 blob."""
        if isinstance(plaintext, str):
            plaintext = plaintext.encode(encoding.value)
        blob = base64.b64encode(b'fake-dpapi-%d' % next(self._counter)).decode('ascii')
        self.vault[(blob, entropy)] = plaintext
        return blob

    def add_file(self, path, version=None, content=b''):
        self.files[path.lower()] = content
        if version is not None:
            self.versions[path.lower()] = version

    @property
    def unprotect_calls(self):
        return [script for script in self.scripts if 'ProtectedData]::Unprotect(' in script]

    @property
    def queries(self):
        return [command for command in self.commands if command.startswith('sqlcmd -d ')]

    # RemoteExecutor interface

    def execute_command(self, command):
        if self.fail:
            raise RemoteExecutionError("The session died.")
        self.commands.append(command)
        if command.startswith(_ENCODED_PREFIX):
            script = base64.b64decode(command[len(_ENCODED_PREFIX):]).decode('utf-16-le')
            self.scripts.append(script)
            return self.run_script(script)
        if command == 'sqlcmd -?':
            return SQLCMD_HELP if self.sqlcmd else "'sqlcmd' is not recognized as an internal or external command"
        if command == 'osql -?':
            return ''
        if command.startswith('sqlcmd -d '):
            match = _DATABASE.search(command)
            database = match.group(1).replace('""', '"') if match else None
            if database not in self.databases:
                return "Msg 4060, Level 11, State 1, Server VEEAMSRV, Line 1\r\nCannot open database"
            return self.databases[database]
        return ''

    def read_file(self, path):
        return self.files[path.lower()]

    def file_exists(self, path):
        return path.lower() in self.files

    # PowerShell emulation

    def run_script(self, script):
        if script == '$env:COMPUTERNAME':
            return self.hostname + '\r\n'

        match = _GET_ITEM_PATH.match(script)
        if match:
            path = match.group(1).replace("''", "'")
            return self.versions.get(path.lower(), '') + '\r\n'

        if 'Veeam ONE\\Private' in script and '-Name Entropy' in script:
            return (self.entropy + '\r\n') if self.entropy else ''

        if 'ProtectedData]::Protect(' in script:
            if self.protect_output is not None:
                return self.protect_output
            return self.BLANK_BLOB + '\r\n'

        if 'ProtectedData]::Unprotect(' in script:
            return self._unprotect(script)

        if script.startswith('if (Test-Path'):
            key = self._registry_key(_LITERAL.findall(script)[0])
            return 'True\r\n' if self.registry.key_exists(key) else 'False\r\n'

        if 'Get-ItemPropertyValue -LiteralPath' in script:
            path, name = [literal.replace("''", "'") for literal in _LITERAL.findall(script)[:2]]
            value = self.registry.get_value(self._registry_key(path), name)
            return '' if value is None else value + '\r\n'

        return ''

    @staticmethod
    def _registry_key(provider_path):
        provider_path = provider_path.replace("''", "'")
        hive, _, rest = provider_path.partition('\\')
        return hive.rstrip(':') + '\\' + rest

    def _unprotect(self, script):
        payloads = _LITERAL.findall(_UNPROTECT_PAYLOADS.search(script).group(1))
        match = _UNPROTECT_ENTROPY.search(script)
        entropy = match.group(1) if match else None
        lines = []
        for payload in payloads:
            key = (payload, entropy)
            if key not in self.vault and payload == self.BLANK_BLOB:
                key = (payload, None)
            if key in self.vault:
                lines.append(base64.b64encode(self.vault[key]).decode('ascii'))
            else:
                # The script's catch block writes an empty string.
                lines.append('')
        return ''.join(line + '\r\n' for line in lines)


class MemorySink(LootSink):
    """A sink that keeps everything it's given in lists."""

    def __init__(self):
        self.credentials = []
        self.artifacts = []

    def store_credential(self, credential, service=None):
        self.credentials.append((credential, service))

    def store_artifact(self, name, data, mime_type='text/csv', label=None, file_name=None):
        self.artifacts.append((name, data, mime_type, label, file_name))
        return 'memory://%s/%d' % (name, len(self.artifacts))

    def artifact(self, name):
        for artifact_name, data, _, _, _ in self.artifacts:
            if artifact_name == name:
                return data
        raise KeyError(name)
