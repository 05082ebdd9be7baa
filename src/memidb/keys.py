##############################################################################
#
# Copyright (c) 2019 Zope Foundation and Contributors.
# All Rights Reserved.
#
# This software is subject to the provisions of the Zope Public License,
# Version 2.1 (ZPL).  A copy of the ZPL should accompany this distribution.
# THIS SOFTWARE IS PROVIDED "AS IS" AND ANY AND ALL EXPRESS OR IMPLIED
# WARRANTIES ARE DISCLAIMED, INCLUDING, BUT NOT LIMITED TO, THE IMPLIED
# WARRANTIES OF TITLE, MERCHANTABILITY, AGAINST INFRINGEMENT, AND FITNESS
# FOR A PARTICULAR PURPOSE.
#
##############################################################################
"""
Keys, their total order, and key ranges.

A valid key is a number, a :class:`datetime.datetime`, a string, a
bytes-like object, or a list or tuple of valid keys. Across types the
order is numbers < dates < strings < binary < arrays; arrays compare
element by element, and a prefix sorts first.

Internally every key is *encoded* into a tuple ``(rank, payload)``
that Python compares in exactly that order. Encoded keys are what the
BTrees holding records and index entries are keyed by.
"""

import math
from datetime import datetime

from .interfaces import DataError

__all__ = [
    'KEY_MIN',
    'KEY_MAX',
    'KeyRange',
    'cmp',
    'encode_key',
    'is_valid_key',
    'normalize_key',
    'to_range',
]

_NUMBER = 1
_DATE = 2
_STRING = 3
_BINARY = 4
_ARRAY = 5

#: Sorts before every encoded key.
KEY_MIN = (0,)
#: Sorts after every encoded key.
KEY_MAX = (99,)


def _encode(key, seen):
    # bool is an int, but not a key.
    if isinstance(key, bool):
        raise DataError('Booleans are not valid keys: %r' % (key,))
    if isinstance(key, (int, float)):
        if isinstance(key, float) and math.isnan(key):
            raise DataError('NaN is not a valid key')
        try:
            return (_NUMBER, float(key))
        except OverflowError:
            raise DataError('The number %r is too large to be a key' % (key,))
    if isinstance(key, datetime):
        return (_DATE, key.timestamp())
    if isinstance(key, str):
        return (_STRING, key)
    if isinstance(key, (bytes, bytearray, memoryview)):
        return (_BINARY, bytes(key))
    if isinstance(key, (list, tuple)):
        if id(key) in seen:
            raise DataError('Arrays containing themselves are not valid keys')
        seen.add(id(key))
        try:
            return (_ARRAY, tuple(_encode(k, seen) for k in key))
        finally:
            seen.discard(id(key))
    raise DataError('Not a valid key: %r' % (key,))


def encode_key(key):
    """
    Return the order-preserving encoding of *key*.

    :raises DataError: If *key* is not a valid key.
    """
    return _encode(key, set())


def is_valid_key(key):
    try:
        encode_key(key)
    except DataError:
        return False
    return True


def normalize_key(key):
    """
    Return the canonical form of *key*: arrays become lists and
    bytes-like objects become bytes.

    The key must already be known to be valid.
    """
    if isinstance(key, (list, tuple)):
        return [normalize_key(k) for k in key]
    if isinstance(key, (bytearray, memoryview)):
        return bytes(key)
    return key


def cmp(first, second):
    """
    Compare two keys, returning -1, 0 or 1.

    :raises DataError: If either argument is not a valid key.
    """
    first = encode_key(first)
    second = encode_key(second)
    return (first > second) - (first < second)


class KeyRange(object):
    """
    A continuous interval of keys, each end open or closed.

    Either end may be unbounded (``None``). Construct instances with
    the class methods.
    """

    __slots__ = (
        'lower',
        'upper',
        'lower_open',
        'upper_open',
        'lower_enc',
        'upper_enc',
    )

    def __init__(self, lower, upper, lower_open, upper_open):
        self.lower = normalize_key(lower) if lower is not None else None
        self.upper = normalize_key(upper) if upper is not None else None
        self.lower_open = bool(lower_open)
        self.upper_open = bool(upper_open)
        self.lower_enc = encode_key(lower) if lower is not None else None
        self.upper_enc = encode_key(upper) if upper is not None else None
        if self.lower_enc is not None and self.upper_enc is not None:
            if self.lower_enc > self.upper_enc:
                raise DataError('The lower bound is greater than the upper bound')
            if self.lower_enc == self.upper_enc and (self.lower_open or self.upper_open):
                raise DataError('Equal bounds cannot be open')

    @classmethod
    def only(cls, value):
        encode_key(value)
        return cls(value, value, False, False)

    @classmethod
    def lower_bound(cls, lower, open=False): # pylint:disable=redefined-builtin
        encode_key(lower)
        return cls(lower, None, open, True)

    @classmethod
    def upper_bound(cls, upper, open=False): # pylint:disable=redefined-builtin
        encode_key(upper)
        return cls(None, upper, True, open)

    @classmethod
    def bound(cls, lower, upper, lower_open=False, upper_open=False):
        if lower is None or upper is None:
            raise DataError('Both bounds are required')
        return cls(lower, upper, lower_open, upper_open)

    def includes(self, key):
        """
        Is *key* within this range?

        :raises DataError: If *key* is not a valid key.
        """
        return self.includes_encoded(encode_key(key))

    def includes_encoded(self, key_enc):
        if self.lower_enc is not None:
            if key_enc < self.lower_enc:
                return False
            if self.lower_open and key_enc == self.lower_enc:
                return False
        if self.upper_enc is not None:
            if key_enc > self.upper_enc:
                return False
            if self.upper_open and key_enc == self.upper_enc:
                return False
        return True

    def __repr__(self):
        return '<%s %s%r, %r%s>' % (
            type(self).__name__,
            '(' if self.lower_open else '[',
            self.lower,
            self.upper,
            ')' if self.upper_open else ']',
        )


def to_range(query):
    """
    Coerce a query argument into a :class:`KeyRange`, or None for
    "everything".

    :raises DataError: If *query* is neither a range nor a valid key.
    """
    if query is None or isinstance(query, KeyRange):
        return query
    return KeyRange.only(query)
