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
Key paths, and the structured values they are evaluated against.

A key path is either a string of dotted identifiers (``'address.city'``;
the empty string names the value itself) or a non-empty list of such
strings, which evaluates to a list of keys.

Values are limited to a closed set of types: dicts with string keys,
lists and tuples, sets, strings, numbers, booleans, None, bytes-like
objects and datetimes. Everything in this module is a pure traversal
over that set.
"""

from datetime import datetime

from .interfaces import DataCloneError
from .interfaces import DataError
from .interfaces import KeyPathSyntaxError

__all__ = [
    'MISSING',
    'clone_value',
    'evaluate_key_path',
    'inject_key',
    'validate_key_path',
]


class _Missing(object):
    __slots__ = ()

    def __repr__(self):
        return 'MISSING'

    def __bool__(self):
        return False

#: Returned when a key path does not resolve against a value.
MISSING = _Missing()


def _validate_string_path(key_path):
    if key_path == '':
        return key_path
    for part in key_path.split('.'):
        if not part.isidentifier():
            raise KeyPathSyntaxError('Invalid key path: %r' % (key_path,))
    return key_path


def validate_key_path(key_path):
    """
    Check *key_path* and return its canonical form: None, a string, or
    a list of strings.

    :raises KeyPathSyntaxError: If the key path is malformed.
    """
    if key_path is None:
        return None
    if isinstance(key_path, str):
        return _validate_string_path(key_path)
    if isinstance(key_path, (list, tuple)):
        if not key_path:
            raise KeyPathSyntaxError('A sequence key path must not be empty')
        for part in key_path:
            if not isinstance(part, str):
                raise KeyPathSyntaxError('Invalid key path component: %r' % (part,))
            _validate_string_path(part)
        return list(key_path)
    raise KeyPathSyntaxError('Invalid key path: %r' % (key_path,))


def _step(value, name):
    if isinstance(value, dict):
        return value.get(name, MISSING)
    if name == 'length' and isinstance(value, (str, list, tuple, bytes, bytearray)):
        return len(value)
    return MISSING


def _evaluate_string(value, key_path):
    if key_path == '':
        return value
    for name in key_path.split('.'):
        value = _step(value, name)
        if value is MISSING:
            break
    return value


def evaluate_key_path(value, key_path):
    """
    Resolve *key_path* against *value*.

    The result is not checked for validity as a key. A sequence key
    path resolves to a list, or to :data:`MISSING` if any component
    doesn't resolve.
    """
    if isinstance(key_path, list):
        result = []
        for part in key_path:
            part_value = _evaluate_string(value, part)
            if part_value is MISSING:
                return MISSING
            result.append(part_value)
        return result
    return _evaluate_string(value, key_path)


def inject_key(value, key_path, key):
    """
    Store *key* into *value* at the string *key_path*, creating
    intermediate dicts as needed.

    :raises DataError: If something on the path is not a dict.
    """
    names = key_path.split('.')
    for name in names[:-1]:
        if not isinstance(value, dict):
            raise DataError('Cannot inject a key into %r' % (value,))
        value = value.setdefault(name, {})
    if not isinstance(value, dict):
        raise DataError('Cannot inject a key into %r' % (value,))
    value[names[-1]] = key


_IMMUTABLE_TYPES = (type(None), bool, int, float, str, bytes, datetime)


def _clone(value, memo):
    if isinstance(value, _IMMUTABLE_TYPES):
        return value

    vid = id(value)
    if vid in memo:
        return memo[vid]

    if isinstance(value, dict):
        result = memo[vid] = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise DataCloneError('Mapping keys must be strings, not %r' % (k,))
            result[k] = _clone(v, memo)
    elif isinstance(value, (list, tuple)):
        result = memo[vid] = []
        result.extend(_clone(v, memo) for v in value)
    elif isinstance(value, (set, frozenset)):
        result = memo[vid] = set()
        result.update(_clone(v, memo) for v in value)
    elif isinstance(value, (bytearray, memoryview)):
        result = memo[vid] = bytearray(value)
    else:
        raise DataCloneError('Cannot clone %r' % (type(value).__name__,))
    return result


def clone_value(value):
    """
    Return a structural deep copy of *value*.

    Shared and cyclic references are preserved. Tuples become lists
    and frozensets become sets.

    :raises DataCloneError: If *value* contains anything outside the
       supported types.
    """
    return _clone(value, {})
