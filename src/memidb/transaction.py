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
Transactions and their lifecycle states.

A transaction moves through ``active``, ``committing`` and then either
``committed`` or ``aborted``. Each phase is a state object; the
transaction delegates the decisions that differ between phases to its
current state, so the transitions are explicit and each state can be
tested independently.

Writes apply to the record tables immediately. Before the first write
to a store the transaction snapshots that store (an upgrade
transaction snapshots the whole database when it begins) and an abort
puts the snapshots back.
"""

from collections import deque

from zope.interface import implementer

from ._util import TRACE
from ._util import stat_count
from .events import Event
from .events import EventTarget
from .handles import ObjectStore
from .interfaces import AbortError
from .interfaces import IDBError
from .interfaces import ITransaction
from .interfaces import ITransactionState
from .interfaces import InvalidStateError
from .interfaces import ReadOnlyError
from .interfaces import TransactionInactiveError
from .request import Request

logger = __import__('logging').getLogger(__name__)

READONLY = 'readonly'
READWRITE = 'readwrite'
VERSIONCHANGE = 'versionchange'


@implementer(ITransactionState)
class _TransactionState(object):
    __slots__ = ()

    name = None
    accepts_requests = False
    #: Has the transaction reached a final state?
    finished = False

    def check_active(self, transaction):
        raise TransactionInactiveError('The transaction is %s' % (self.name,))

    def commit(self, transaction):
        raise InvalidStateError('Cannot commit a transaction that is %s' % (self.name,))

    def abort(self, transaction, error):
        raise InvalidStateError('Cannot abort a transaction that is %s' % (self.name,))

    def __repr__(self):
        return '<%s>' % (type(self).__name__,)


class Active(_TransactionState):
    """
    Accepting requests; commits once none are outstanding.
    """
    __slots__ = ()

    name = 'active'
    accepts_requests = True

    def check_active(self, transaction):
        pass

    def commit(self, transaction):
        transaction._set_state(COMMITTING)
        transaction._schedule_commit()

    def abort(self, transaction, error):
        transaction._do_abort(error)


class Committing(_TransactionState):
    """
    No longer accepting requests, but outstanding ones have yet to be
    announced.
    """
    __slots__ = ()

    name = 'committing'

    def abort(self, transaction, error):
        transaction._do_abort(error)


class Committed(_TransactionState):
    __slots__ = ()

    name = 'committed'
    finished = True


class Aborted(_TransactionState):
    __slots__ = ()

    name = 'aborted'
    finished = True


ACTIVE = Active()
COMMITTING = Committing()
COMMITTED = Committed()
ABORTED = Aborted()


@implementer(ITransaction)
class Transaction(EventTarget):
    """
    A group of requests against a fixed set of stores.
    """

    oncomplete = None
    onabort = None
    onerror = None

    def __init__(self, db, scope, mode=READONLY, durability='default'):
        self.db = db
        self.mode = mode
        self.durability = durability
        self.error = None
        # None means every store in the database (upgrades).
        self._scope = frozenset(scope) if scope is not None else None
        self._state = ACTIVE
        self._scheduler = db._scheduler
        self._unannounced = deque()
        self._stores = {}
        self._snapshots = {}
        self._finish_callbacks = []
        self._db_snapshot = None
        if mode == VERSIONCHANGE:
            self._db_snapshot = db._state.snapshot()
        # Commit is considered at the end of the current turn.
        self._scheduler.call_soon(self._maybe_commit)

    @property
    def state(self):
        return self._state.name

    @property
    def object_store_names(self):
        if self._scope is None:
            return self.db._state.store_names
        return sorted(self._scope)

    @property
    def options(self):
        return self.db._options

    def get_parent_target(self):
        return self.db

    def _set_state(self, state):
        logger.log(TRACE, "Transaction %r moving to %r", self, state)
        self._state = state

    def object_store(self, name):
        """
        Return the store handle for *name*.

        :raises InvalidStateError: If the transaction is finished, or
           *name* is outside its scope.
        :raises NotFoundError: If an upgrade names a store that does
           not exist.
        """
        if self._state.finished:
            raise InvalidStateError('The transaction is %s' % (self.state,))
        if self._scope is not None and name not in self._scope:
            raise InvalidStateError('Object store %r is not in the transaction scope' % (name,))
        table = self.db._state.store(name)
        handle = self._stores.get(name)
        if handle is None or handle._table is not table:
            handle = self._stores[name] = ObjectStore(self, table)
        return handle

    def commit(self):
        self._state.commit(self)

    def abort(self):
        self._state.abort(self, AbortError('The transaction was aborted'))

    def add_finish_callback(self, callback):
        """
        Call ``callback(transaction)`` once the ``complete`` or ``abort``
        event has been dispatched.
        """
        self._finish_callbacks.append(callback)

    ###
    # Requests
    ###

    def _check_active(self):
        self._state.check_active(self)

    def _will_write(self, table):
        """
        Called before any mutation of *table*.
        """
        self._check_active()
        if self.mode == READONLY:
            raise ReadOnlyError('The transaction is read-only')
        if self._db_snapshot is None and table.name not in self._snapshots:
            self._snapshots[table.name] = (table, table.snapshot())

    def _execute(self, source, operation, args=(), request=None):
        """
        Apply ``operation(*args)`` now and queue the announcement of its
        outcome.

        Storage errors raised by *operation* become the request's error.
        """
        self._check_active()
        if request is None:
            request = Request(source, self)
        try:
            result = operation(*args)
        except IDBError as e:
            logger.log(TRACE, "Request on %r failed: %r", source, e)
            request._set_outcome(error=e)
        else:
            request._set_outcome(result)
        self._enqueue(request)
        return request

    def _enqueue(self, request):
        self._unannounced.append(request)
        self._scheduler.call_soon(self._announce, request)

    def _announce(self, request):
        self._unannounced.remove(request)
        event = request._announce()
        self._handle_handler_errors(event)
        if (request.error is not None
                and not event.default_prevented
                and not self._state.finished):
            self._do_abort(request.error)
        if not self._unannounced:
            self._schedule_commit()

    def _handle_handler_errors(self, event):
        if not event.handler_errors:
            return
        for exc in event.handler_errors:
            self._scheduler.report_handler_error(exc)
        if not self._state.finished:
            self._do_abort(AbortError('An event handler raised %r' % (event.handler_errors[0],)))

    ###
    # Completion
    ###

    def _schedule_commit(self):
        self._scheduler.call_soon(self._maybe_commit)

    def _maybe_commit(self):
        if self._state.finished or self._unannounced:
            return
        self._set_state(COMMITTING)
        self._complete()

    def _complete(self):
        self._set_state(COMMITTED)
        self._snapshots = None
        self._db_snapshot = None
        stat_count('memidb.transaction.commit')
        logger.debug("Committed %r", self)
        event = Event('complete')
        self.dispatch_event(event)
        self._handle_handler_errors(event)
        self._run_finish_callbacks()

    def _do_abort(self, error):
        self._set_state(ABORTED)
        self.error = error
        for request in self._unannounced:
            request._set_outcome(error=AbortError())

        if self._db_snapshot is not None:
            self.db._state.restore(self._db_snapshot)
        else:
            for table, table_state in self._snapshots.values():
                table.restore(table_state)
        self._snapshots = None
        self._db_snapshot = None

        stat_count('memidb.transaction.abort')
        logger.debug("Aborted %r: %r", self, error)
        # After every outstanding announcement.
        self._scheduler.call_soon(self._fire_abort)

    def _fire_abort(self):
        event = Event('abort', bubbles=True)
        self.dispatch_event(event)
        self._handle_handler_errors(event)
        self._run_finish_callbacks()

    def _run_finish_callbacks(self):
        callbacks, self._finish_callbacks = self._finish_callbacks, []
        for callback in callbacks:
            callback(self)

    def __repr__(self):
        return '<%s at 0x%x db=%r mode=%s state=%s scope=%s>' % (
            type(self).__name__,
            id(self),
            self.db.name,
            self.mode,
            self.state,
            self.object_store_names if self._scope is not None else '*',
        )
