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
The per-database catalog of stores and indexes.

:class:`DatabaseState` is shared by every connection to a database.
It is only ever changed by the one upgrade transaction that holds it;
:meth:`DatabaseState.begin_upgrade` enforces that.
"""

from .interfaces import ConstraintError
from .interfaces import InvalidStateError
from .interfaces import NotFoundError
from .keypath import clone_value
from .records import RecordTable
from .schema import IndexSchema
from .schema import StoreSchema

logger = __import__('logging').getLogger(__name__)


class DatabaseState(object):
    """
    The version and stores of one named database.
    """

    def __init__(self, name, version=0):
        self.name = name
        self.version = version
        self.stores = {}
        #: The running versionchange transaction, if any.
        self.upgrade_transaction = None

    @property
    def store_names(self):
        return sorted(self.stores)

    def store(self, name):
        try:
            return self.stores[name]
        except KeyError:
            raise NotFoundError('No object store named %r in %r' % (name, self.name))

    def create_store(self, name, key_path=None, auto_increment=False):
        """
        Create and return the :class:`RecordTable` for a new store.
        """
        if name in self.stores:
            raise ConstraintError('An object store named %r already exists' % (name,))
        table = RecordTable(StoreSchema(name, key_path, auto_increment))
        self.stores[name] = table
        logger.debug("Created object store %r in %r", name, self.name)
        return table

    def delete_store(self, name):
        self.store(name)
        del self.stores[name]
        logger.debug("Deleted object store %r from %r", name, self.name)

    def create_index(self, store_name, name, key_path, unique=False, multi_entry=False):
        table = self.store(store_name)
        if name in table.indexes:
            raise ConstraintError('An index named %r already exists on %r' % (name, store_name))
        return table.create_index(IndexSchema(name, key_path, unique, multi_entry))

    def delete_index(self, store_name, name):
        table = self.store(store_name)
        if name not in table.indexes:
            raise NotFoundError('No index named %r on %r' % (name, store_name))
        table.delete_index(name)

    def begin_upgrade(self, transaction):
        if self.upgrade_transaction is not None:
            raise InvalidStateError('%r is already being upgraded' % (self.name,))
        self.upgrade_transaction = transaction

    def end_upgrade(self, transaction):
        if self.upgrade_transaction is transaction:
            self.upgrade_transaction = None

    def snapshot(self):
        """
        Capture everything an upgrade can change.
        """
        return (
            self.version,
            dict(self.stores),
            {name: table.snapshot() for name, table in self.stores.items()},
        )

    def restore(self, state):
        self.version, self.stores, tables = state
        for name, table_state in tables.items():
            self.stores[name].restore(table_state)

    def as_mapping(self, clone=False):
        """
        Return ``{store_name: {primary_key: value}}``.

        Primary keys that are lists are returned as tuples. If *clone*
        is true the values are copies.
        """
        result = {}
        for name, table in self.stores.items():
            result[name] = {
                _hashable(pkey): clone_value(value) if clone else value
                for pkey, value in table.items()
            }
        return result

    def __repr__(self):
        return '<%s %r version=%d stores=%s>' % (
            type(self).__name__, self.name, self.version, self.store_names
        )


def _hashable(key):
    if isinstance(key, list):
        return tuple(_hashable(k) for k in key)
    return key
