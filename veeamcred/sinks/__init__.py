"""
Built-in loot sinks.
"""


from . import callbacks, composites, files, logs, null


__author__ = 'Aaron Hosford'
__all__ = [
    'callbacks',
    'composites',
    'files',
    'logs',
    'null',
]
