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
Record tables and the secondary indexes derived from them.

Both are ordered maps held in an :class:`BTrees.OOBTree.OOBTree`
keyed by encoded keys (see :mod:`memidb.keys`); a *position* is a key
of one of those trees. Record positions are encoded primary keys.
Index positions are ``(index_key_enc, primary_key_enc)`` pairs, so
entries sharing an index key are ordered by primary key.

Scans are bounded by ``(position, exclusive)`` pairs, either of which
may be None for "unbounded".
"""

import math

from BTrees.OOBTree import OOBTree

from ._util import log_timed
from ._util import TRACE
from .interfaces import ConstraintError
from .interfaces import DataError
from .keypath import MISSING
from .keypath import evaluate_key_path
from .keypath import inject_key
from .keys import KEY_MAX
from .keys import encode_key
from .keys import is_valid_key
from .keys import normalize_key

logger = __import__('logging').getLogger(__name__)

#: The largest key a generator will produce.
MAX_GENERATED_KEY = 2 ** 53


def tighter_lower(a, b):
    if a is None:
        return b
    if b is None:
        return a
    if a[0] != b[0]:
        return a if a[0] > b[0] else b
    return (a[0], a[1] or b[1])


def tighter_upper(a, b):
    if a is None:
        return b
    if b is None:
        return a
    if a[0] != b[0]:
        return a if a[0] < b[0] else b
    return (a[0], a[1] or b[1])


class _OrderedTable(object):

    _tree = None

    def key_lower(self, key_enc, open_):
        raise NotImplementedError

    def key_upper(self, key_enc, open_):
        raise NotImplementedError

    def entry(self, position, item):
        """
        Return ``(key, primary_key, primary_key_enc)`` for the tree item
        at *position*.
        """
        raise NotImplementedError

    def range_bounds(self, key_range):
        if key_range is None:
            return None, None
        lower = upper = None
        if key_range.lower_enc is not None:
            lower = self.key_lower(key_range.lower_enc, key_range.lower_open)
        if key_range.upper_enc is not None:
            upper = self.key_upper(key_range.upper_enc, key_range.upper_open)
        return lower, upper

    def _items(self, lower, upper):
        kw = {}
        if lower is not None:
            kw['min'] = lower[0]
            kw['excludemin'] = lower[1]
        if upper is not None:
            kw['max'] = upper[0]
            kw['excludemax'] = upper[1]
        if lower is not None and upper is not None and lower[0] > upper[0]:
            return ()
        return self._tree.items(**kw)

    def scan(self, lower=None, upper=None, reverse=False):
        """
        Iterate ``(position, item)`` pairs between the bounds.
        """
        items = self._items(lower, upper)
        return reversed(items) if reverse else iter(items)

    def first(self, lower=None, upper=None, reverse=False):
        """
        Return the first ``(position, item)`` between the bounds in the
        given direction, or None.
        """
        items = self._items(lower, upper)
        if reverse:
            count = len(items)
            return items[count - 1] if count else None
        for pair in items:
            return pair
        return None

    def scan_range(self, key_range, reverse=False):
        lower, upper = self.range_bounds(key_range)
        return self.scan(lower, upper, reverse)

    def count(self, key_range=None):
        lower, upper = self.range_bounds(key_range)
        return len(self._items(lower, upper))


class IndexTable(_OrderedTable):
    """
    The entries of one secondary index.
    """

    def __init__(self, schema):
        self.schema = schema
        # (ikey_enc, pkey_enc) -> (ikey, pkey)
        self._tree = OOBTree()
        # pkey_enc -> tuple of ikey_enc, for retraction.
        self._by_primary = {}

    @property
    def name(self):
        return self.schema.name

    def key_lower(self, key_enc, open_):
        return ((key_enc, KEY_MAX), False) if open_ else ((key_enc,), False)

    def key_upper(self, key_enc, open_):
        return ((key_enc,), False) if open_ else ((key_enc, KEY_MAX), False)

    def key_enc_of(self, position):
        return position[0]

    def entry(self, position, item):
        return item[0], item[1], position[1]

    def check_unique(self, index_keys, pkey_enc):
        """
        :raises ConstraintError: If this is a unique index and one of
           *index_keys* already belongs to a different record.
        """
        if not self.schema.unique:
            return
        for ikey_enc, ikey in index_keys:
            for _ikey_enc, other in self._tree.keys(min=(ikey_enc,), max=(ikey_enc, KEY_MAX)):
                if other != pkey_enc:
                    raise ConstraintError(
                        'Index %r already contains the key %r' % (self.name, ikey))

    def add_entries(self, index_keys, pkey_enc, pkey):
        for ikey_enc, ikey in index_keys:
            self._tree[(ikey_enc, pkey_enc)] = (ikey, pkey)
        self._by_primary[pkey_enc] = tuple(ikey_enc for ikey_enc, _ in index_keys)

    def retract(self, pkey_enc):
        for ikey_enc in self._by_primary.pop(pkey_enc, ()):
            del self._tree[(ikey_enc, pkey_enc)]

    def clear(self):
        self._tree.clear()
        self._by_primary.clear()

    def mapping(self):
        """
        Return the entries as a sorted list of ``(index_key, primary_key)``.
        """
        return list(self._tree.values())

    def snapshot(self):
        return OOBTree(self._tree), dict(self._by_primary)

    def restore(self, state):
        self._tree, self._by_primary = state

    def __repr__(self):
        return '<%s %r entries=%d>' % (type(self).__name__, self.name, len(self._tree))


class RecordTable(_OrderedTable):
    """
    The records of one object store, with its indexes and key generator.

    Mutations keep every index consistent before they return; a
    mutation that fails leaves the table and its indexes untouched.
    """

    def __init__(self, schema):
        self.schema = schema
        # pkey_enc -> (pkey, value)
        self._tree = OOBTree()
        self.indexes = {}
        self.key_generator = 1

    @property
    def name(self):
        return self.schema.name

    def key_lower(self, key_enc, open_):
        return (key_enc, open_)

    def key_upper(self, key_enc, open_):
        return (key_enc, open_)

    def key_enc_of(self, position):
        return position

    def entry(self, position, item):
        return item[0], item[0], position

    def __len__(self):
        return len(self._tree)

    def __contains__(self, pkey_enc):
        return pkey_enc in self._tree

    def value_at(self, pkey_enc):
        return self._tree[pkey_enc][1]

    def get(self, pkey_enc, default=None):
        item = self._tree.get(pkey_enc)
        return item if item is not None else default

    def items(self):
        """
        Return a list of ``(primary_key, value)`` in key order.
        """
        return list(self._tree.values())

    def _next_generated_key(self):
        if self.key_generator > MAX_GENERATED_KEY:
            raise ConstraintError('The key generator for %r is exhausted' % (self.name,))
        return self.key_generator

    def _bump_generator(self, key):
        if isinstance(key, bool) or not isinstance(key, (int, float)):
            return
        if key < self.key_generator:
            return
        if key >= MAX_GENERATED_KEY:
            self.key_generator = MAX_GENERATED_KEY + 1
        else:
            self.key_generator = int(math.floor(key)) + 1

    def resolve_key(self, value, key=None):
        """
        Determine the primary key for *value*.

        An explicit *key* always wins, even on stores with a key path;
        *value* is left untouched then. Otherwise the key comes from the
        key path, or, for auto-increment stores, from the generator (and
        is written into *value*).

        :return: ``(key, key_enc, generated)``
        :raises DataError: If no valid key can be determined.
        """
        schema = self.schema
        if key is not None:
            return normalize_key(key), encode_key(key), False

        if schema.key_path is not None:
            found = evaluate_key_path(value, schema.key_path)
            if found is not MISSING:
                if not is_valid_key(found):
                    raise DataError('The key path %r yielded an invalid key %r' % (
                        schema.key_path, found))
                return normalize_key(found), encode_key(found), False
            if not schema.auto_increment:
                raise DataError('The key path %r did not yield a key' % (schema.key_path,))
            generated = self._next_generated_key()
            inject_key(value, schema.key_path, generated)
            return generated, encode_key(generated), True

        if schema.auto_increment:
            generated = self._next_generated_key()
            return generated, encode_key(generated), True

        raise DataError('Store %r needs an explicit key' % (self.name,))

    def store(self, value, key=None, overwrite=False):
        """
        Insert (or, if *overwrite*, replace) *value* and return its
        primary key.

        :raises ConstraintError: If the key exists and *overwrite* is
           false, or a unique index would be violated.
        :raises DataError: If no valid key can be determined.
        """
        pkey, pkey_enc, generated = self.resolve_key(value, key)
        if not overwrite and pkey_enc in self._tree:
            raise ConstraintError('Store %r already contains the key %r' % (self.name, pkey))

        all_index_keys = []
        for index in self.indexes.values():
            index_keys = index.schema.index_keys(value)
            index.check_unique(index_keys, pkey_enc)
            all_index_keys.append((index, index_keys))

        if generated:
            self.key_generator += 1
        elif self.schema.auto_increment:
            self._bump_generator(pkey)

        for index, index_keys in all_index_keys:
            index.retract(pkey_enc)
            index.add_entries(index_keys, pkey_enc, pkey)
        self._tree[pkey_enc] = (pkey, value)
        logger.log(TRACE, "Stored %r in %r", pkey, self.name)
        return pkey

    def delete_positions(self, pkey_encs):
        for pkey_enc in pkey_encs:
            for index in self.indexes.values():
                index.retract(pkey_enc)
            del self._tree[pkey_enc]

    def delete_range(self, key_range):
        """
        Remove every record in *key_range* and return how many there were.
        """
        lower, upper = self.range_bounds(key_range)
        doomed = [position for position, _ in self.scan(lower, upper)]
        self.delete_positions(doomed)
        return len(doomed)

    def clear(self):
        self._tree.clear()
        for index in self.indexes.values():
            index.clear()

    @log_timed
    def create_index(self, schema):
        """
        Build an index for *schema* over the existing records and add it.

        :raises ConstraintError: If the existing records violate the
           index's uniqueness. The table is left without the index.
        """
        index = IndexTable(schema)
        for pkey_enc, (pkey, value) in self._tree.items():
            index_keys = schema.index_keys(value)
            index.check_unique(index_keys, pkey_enc)
            index.add_entries(index_keys, pkey_enc, pkey)
        self.indexes[schema.name] = index
        logger.debug("Created index %r on %r with %d entries",
                     schema.name, self.name, len(index._tree))
        return index

    def delete_index(self, name):
        del self.indexes[name]

    def snapshot(self):
        return (
            OOBTree(self._tree),
            self.key_generator,
            self.schema,
            {name: (index, index.snapshot()) for name, index in self.indexes.items()},
        )

    def restore(self, state):
        self._tree, self.key_generator, self.schema, indexes = state
        self.indexes = {}
        for name, (index, index_state) in indexes.items():
            index.restore(index_state)
            self.indexes[name] = index

    def __repr__(self):
        return '<%s %r records=%d indexes=%s>' % (
            type(self).__name__, self.name, len(self._tree), sorted(self.indexes)
        )
