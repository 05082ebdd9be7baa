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
Database connections.
"""

from zope.interface import implementer

from .events import Event
from .events import EventTarget
from .interfaces import IDatabase
from .interfaces import InvalidAccessError
from .interfaces import InvalidStateError
from .transaction import READONLY
from .transaction import READWRITE
from .transaction import Transaction

logger = __import__('logging').getLogger(__name__)


@implementer(IDatabase)
class Database(EventTarget):
    """
    One connection to a named database, as produced by
    :meth:`memidb.registry.Registry.open`.
    """

    onversionchange = None
    onclose = None
    onerror = None
    onabort = None

    def __init__(self, registry, state):
        self._registry = registry
        self._state = state
        self._scheduler = registry.scheduler
        self._options = registry.options
        self.closed = False
        self._upgrade_transaction = None

    @property
    def name(self):
        return self._state.name

    @property
    def version(self):
        return self._state.version

    @property
    def object_store_names(self):
        return self._state.store_names

    def _check_upgrading(self):
        transaction = self._upgrade_transaction
        if transaction is None:
            raise InvalidStateError('Stores can only be changed during an upgrade')
        transaction._check_active()
        return transaction

    def create_object_store(self, name, key_path=None, auto_increment=False):
        """
        Create a store and return its handle in the upgrade transaction.
        """
        transaction = self._check_upgrading()
        self._state.create_store(name, key_path, auto_increment)
        return transaction.object_store(name)

    def delete_object_store(self, name):
        self._check_upgrading()
        self._state.delete_store(name)

    def transaction(self, store_names, mode=READONLY, durability='default'):
        if self.closed:
            raise InvalidStateError('The connection is closed')
        if self._upgrade_transaction is not None:
            raise InvalidStateError('The connection is being upgraded')
        if mode not in (READONLY, READWRITE):
            raise TypeError('Invalid transaction mode %r' % (mode,))
        if isinstance(store_names, str):
            store_names = [store_names]
        store_names = list(store_names)
        if not store_names:
            raise InvalidAccessError('A transaction needs at least one store')
        for name in store_names:
            self._state.store(name)
        return Transaction(self, store_names, mode, durability)

    def close(self):
        """
        Close the connection. Transactions already created still finish.
        """
        if self.closed:
            return
        self.closed = True
        self._registry._connection_closed(self)
        self._scheduler.call_soon(self._fire_close)

    def _fire_close(self):
        event = Event('close')
        self.dispatch_event(event)
        for exc in event.handler_errors:
            self._scheduler.report_handler_error(exc)

    def __repr__(self):
        return '<%s %r version=%d%s>' % (
            type(self).__name__, self.name, self.version, ' closed' if self.closed else ''
        )
