"""
Utility functions. This module is the "miscellaneous bin", providing a home for simple functions that
don't really belong anywhere else.
"""


__author__ = 'Aaron Hosford'
__all__ = [
    'distinct',
]


def distinct(items, key=None):
    """
    Return a list of the items in the same order as they first appear, except that later duplicates
    of the same value are removed. Items in the sequence must be hashable, or, if a key is provided,
    the return values of the key must be hashable.

    :param items: An iterable sequence of items.
    :param key: A function mapping the items to a comparison key.
    :return: A list containing only one of each distinct item.
    """
    assert key is None or callable(key)

    seen = set()
    results = []
    for item in items:
        if key is None:
            key_val = item
        else:
            key_val = key(item)

        if key_val not in seen:
            results.append(item)
            seen.add(key_val)

    return results
