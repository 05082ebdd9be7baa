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
Store and index handles.

A handle binds a record table (or index table) to one transaction.
Misuse (wrong transaction state, read-only writes, values that can't
be cloned) raises immediately; everything else is reported through
the returned :class:`memidb.request.Request`.
"""

from zope.interface import implementer

from ._util import metricmethod_sampled
from .cursor import Cursor
from .cursor import CursorWithValue
from .cursor import validate_direction
from .interfaces import ConstraintError
from .interfaces import DataError
from .interfaces import IIndex
from .interfaces import IObjectStore
from .interfaces import InvalidStateError
from .interfaces import NotFoundError
from .keypath import clone_value
from .keys import to_range
from .schema import IndexSchema

logger = __import__('logging').getLogger(__name__)


def _validate_count(count):
    if count is None:
        return None
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise TypeError('count must be a non-negative integer, not %r' % (count,))
    # Zero means no limit.
    return count or None


class _Queryable(object):
    """
    The read operations shared by stores and indexes.
    """

    _table = None
    _records = None
    transaction = None

    def _clone_out(self, value):
        if self.transaction.options.clone_values:
            return clone_value(value)
        return value

    def _entries(self, query, count=None):
        table = self._table
        n = 0
        for position, item in table.scan_range(to_range(query)):
            if count is not None and n >= count:
                break
            n += 1
            yield table.entry(position, item)

    def _first(self, query):
        if query is None:
            raise DataError('A key or key range is required')
        for entry in self._entries(query):
            return entry
        return None

    def _execute(self, operation, *args):
        return self.transaction._execute(self, operation, args)

    @metricmethod_sampled
    def get(self, query):
        def get():
            entry = self._first(query)
            if entry is None:
                return None
            return self._clone_out(self._records.value_at(entry[2]))
        return self._execute(get)

    def get_key(self, query):
        def get_key():
            entry = self._first(query)
            return entry[1] if entry is not None else None
        return self._execute(get_key)

    @metricmethod_sampled
    def get_all(self, query=None, count=None):
        count = _validate_count(count)
        def get_all():
            value_at = self._records.value_at
            return [self._clone_out(value_at(pkey_enc))
                    for _, _, pkey_enc in self._entries(query, count)]
        return self._execute(get_all)

    def get_all_keys(self, query=None, count=None):
        count = _validate_count(count)
        def get_all_keys():
            return [pkey for _, pkey, _ in self._entries(query, count)]
        return self._execute(get_all_keys)

    def count(self, query=None):
        def count():
            return self._table.count(to_range(query))
        return self._execute(count)

    def _open(self, cursor_factory, query, direction):
        validate_direction(direction)
        self.transaction._check_active()
        cursor = cursor_factory(self, self._table, self._records, self.transaction, direction)
        return self.transaction._execute(self, cursor._open, (query,), cursor.request)

    def open_cursor(self, query=None, direction='next'):
        return self._open(CursorWithValue, query, direction)

    def open_key_cursor(self, query=None, direction='next'):
        return self._open(Cursor, query, direction)


@implementer(IObjectStore)
class ObjectStore(_Queryable):
    """
    An object store as seen from one transaction.
    """

    def __init__(self, transaction, table):
        self.transaction = transaction
        self._table = self._records = table
        self._indexes = {}

    @property
    def name(self):
        return self._table.schema.name

    @property
    def key_path(self):
        return self._table.schema.key_path

    @property
    def auto_increment(self):
        return self._table.schema.auto_increment

    @property
    def index_names(self):
        return sorted(self._table.indexes)

    def _clone_in(self, value):
        if self.transaction.options.clone_values:
            return clone_value(value)
        return value

    def _write(self, value, key, overwrite):
        table = self._table
        self.transaction._will_write(table)
        value = self._clone_in(value)
        return self._execute(table.store, value, key, overwrite)

    @metricmethod_sampled
    def add(self, value, key=None):
        return self._write(value, key, False)

    @metricmethod_sampled
    def put(self, value, key=None):
        return self._write(value, key, True)

    @metricmethod_sampled
    def delete(self, query):
        table = self._table
        self.transaction._will_write(table)
        def delete():
            if query is None:
                raise DataError('A key or key range is required')
            table.delete_range(to_range(query))
        return self._execute(delete)

    def clear(self):
        table = self._table
        self.transaction._will_write(table)
        return self._execute(table.clear)

    def index(self, name):
        if self.transaction._state.finished:
            raise InvalidStateError('The transaction is %s' % (self.transaction.state,))
        try:
            index_table = self._table.indexes[name]
        except KeyError:
            raise NotFoundError('No index named %r on %r' % (name, self.name))
        handle = self._indexes.get(name)
        if handle is None or handle._table is not index_table:
            handle = self._indexes[name] = Index(self, index_table)
        return handle

    def _check_upgrading(self):
        if self.transaction.mode != 'versionchange':
            raise InvalidStateError('Indexes can only be changed during an upgrade')
        self.transaction._check_active()

    def create_index(self, name, key_path, unique=False, multi_entry=False):
        """
        Create an index, filling it from the existing records.

        :raises ConstraintError: If an index by that name exists, or if
           the existing records violate *unique*; in the second case the
           upgrade transaction is aborted.
        """
        self._check_upgrading()
        if name in self._table.indexes:
            raise ConstraintError('An index named %r already exists on %r' % (name, self.name))
        schema = IndexSchema(name, key_path, unique, multi_entry)
        try:
            self._table.create_index(schema)
        except ConstraintError as e:
            logger.debug("Index %r on %r could not be built: %s", name, self.name, e)
            self.transaction._do_abort(e)
            raise
        return self.index(name)

    def delete_index(self, name):
        self._check_upgrading()
        self.transaction.db._state.delete_index(self.name, name)
        self._indexes.pop(name, None)

    def __repr__(self):
        return '<%s %r key_path=%r auto_increment=%s>' % (
            type(self).__name__, self.name, self.key_path, self.auto_increment
        )


@implementer(IIndex)
class Index(_Queryable):
    """
    A secondary index as seen from one transaction.
    """

    def __init__(self, object_store, table):
        self.object_store = object_store
        self.transaction = object_store.transaction
        self._table = table
        self._records = object_store._table

    @property
    def name(self):
        return self._table.schema.name

    @property
    def key_path(self):
        return self._table.schema.key_path

    @property
    def unique(self):
        return self._table.schema.unique

    @property
    def multi_entry(self):
        return self._table.schema.multi_entry

    def __repr__(self):
        return '<%s %r on %r key_path=%r>' % (
            type(self).__name__, self.name, self.object_store.name, self.key_path
        )
