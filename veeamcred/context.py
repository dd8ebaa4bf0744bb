"""
The run context: everything one product's pass through the pipeline needs to know, gathered once
and passed explicitly to each step.
"""


import collections


from .exceptions import verify_type
from .targets import Target


__author__ = 'Aaron Hosford'
__all__ = [
    'DUMP_ACTION',
    'EXPORT_ACTION',
    'ACTIONS',
    'RunContext',
]


DUMP_ACTION = 'dump'
EXPORT_ACTION = 'export'

ACTIONS = frozenset({DUMP_ACTION, EXPORT_ACTION})


class RunContext(collections.namedtuple('RunContext', 'target parameters batch action hostname')):
    """
    The immutable state of one product's run.

    :param target: The detected veeamcred.targets.Target.
    :param parameters: The veeamcred.db.parameters.ConnectionParameters for the product's
        database, or None when only decrypting a supplied export.
    :param batch: Whether host protection requests are batched.
    :param action: The action being performed, 'dump' or 'export'.
    :param hostname: The target host's name, if known.
    """

    def __new__(cls, target, parameters=None, batch=True, action=DUMP_ACTION, hostname=None):
        verify_type(target, Target)
        verify_type(batch, bool)
        verify_type(action, str)
        verify_type(hostname, str, allow_none=True)
        action = action.lower()
        if action not in ACTIONS:
            raise ValueError("Unknown action: %r" % action)
        return super().__new__(cls, target, parameters, batch, action, hostname or None)

    @property
    def product(self):
        return self.target.product

    @property
    def database_name(self):
        """The database name used to label artifacts, falling back on the product tag."""
        if self.parameters is not None:
            return self.parameters.database
        return self.target.product.value
