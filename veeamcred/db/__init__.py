"""
veeamcred.db
============

Database-related functionality
"""


from . import parameters
from . import sqlcmd


__author__ = 'Aaron Hosford'
__all__ = [
    'parameters',
    'sqlcmd',
]
