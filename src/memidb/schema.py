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
Immutable descriptions of stores and indexes.
"""

from .interfaces import InvalidAccessError
from .keypath import MISSING
from .keypath import evaluate_key_path
from .keypath import validate_key_path
from .keys import encode_key
from .keys import is_valid_key
from .keys import normalize_key


class StoreSchema(object):
    """
    The definition of an object store.
    """

    __slots__ = (
        'name',
        'key_path',
        'auto_increment',
    )

    def __init__(self, name, key_path=None, auto_increment=False):
        key_path = validate_key_path(key_path)
        auto_increment = bool(auto_increment)
        if auto_increment and (key_path == '' or isinstance(key_path, list)):
            raise InvalidAccessError(
                'Auto-increment stores need a non-empty string key path or none')
        self.name = name
        self.key_path = key_path
        self.auto_increment = auto_increment

    def __repr__(self):
        return '<%s %r key_path=%r auto_increment=%s>' % (
            type(self).__name__, self.name, self.key_path, self.auto_increment
        )


class IndexSchema(object):
    """
    The definition of a secondary index.
    """

    __slots__ = (
        'name',
        'key_path',
        'unique',
        'multi_entry',
    )

    def __init__(self, name, key_path, unique=False, multi_entry=False):
        key_path = validate_key_path(key_path)
        if key_path is None:
            raise InvalidAccessError('Indexes need a key path')
        multi_entry = bool(multi_entry)
        if multi_entry and isinstance(key_path, list):
            raise InvalidAccessError('Multi-entry indexes cannot use a sequence key path')
        self.name = name
        self.key_path = key_path
        self.unique = bool(unique)
        self.multi_entry = multi_entry

    def index_keys(self, value):
        """
        Return a list of ``(key_enc, key)`` pairs that *value*
        contributes to this index.

        Values whose key path doesn't resolve to a valid key
        contribute nothing. For multi-entry indexes over an array,
        each distinct valid element contributes one key.
        """
        ikey = evaluate_key_path(value, self.key_path)
        if ikey is MISSING:
            return []

        if self.multi_entry and isinstance(ikey, (list, tuple)):
            result = {}
            for element in ikey:
                if is_valid_key(element):
                    result.setdefault(encode_key(element), normalize_key(element))
            return sorted(result.items())

        if not is_valid_key(ikey):
            return []
        return [(encode_key(ikey), normalize_key(ikey))]

    def __repr__(self):
        return '<%s %r key_path=%r unique=%s multi_entry=%s>' % (
            type(self).__name__, self.name, self.key_path, self.unique, self.multi_entry
        )
