"""
Veeam credential recovery.

Exports the credential tables of Veeam Backup & Replication and Veeam ONE Monitor databases through
a remote executor, identifies which encryption scheme protected each secret, and decrypts them into
an auditable result table.
"""


from . import abc, db, security, sinks
from . import configurations, context, exceptions, logging, orchestration, plugins, processing, registry
from . import strings, tables, targets, utility, versions


__version__ = '1.0.0'

__author__ = 'Aaron Hosford'
__author_email__ = 'hosford42@gmail.com'
__description__ = 'veeamcred: Veeam Credential Recovery'
__long_description__ = __doc__
__license__ = 'MIT (https://opensource.org/licenses/MIT)'
__python_requires__ = '>=3.10'
__install_requires__ = [
    # 3rd-party
    'cryptography',
]
__extras_require__ = {
    'test': ['pytest'],
}
__packages__ = [
    'veeamcred',
    'veeamcred.abc',
    'veeamcred.db',
    'veeamcred.security',
    'veeamcred.sinks',
    'test_veeamcred',
]
__package_data__ = {
    'veeamcred': ['veeamcred.ini'],
}


plugins.load_plugins()
