"""
Abstract base classes for the collaborators veeamcred depends on.
"""


__author__ = 'Aaron Hosford'
__all__ = [
    'configurations',
    'registry',
    'remote',
    'sinks',
]
