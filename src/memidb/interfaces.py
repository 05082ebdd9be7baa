# -*- coding: utf-8 -*-
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
Interfaces and exceptions for MemIDB components.

The interfaces exist to serve as documentation and for validation of
the implementation; the exceptions are part of the public API. Each
exception's ``name`` is the name the emulated platform gives the same
failure, so code ported from the browser can switch on it.
"""

from zope.interface import Interface
from zope.interface import Attribute
from zope.interface import implementer
from zope.interface.common.interfaces import IException

from zope.schema import Bool
from zope.schema import Choice
from zope.schema import Int
from zope.schema import List
from zope.schema import TextLine

# pylint:disable=inherit-non-class,no-self-argument,no-method-argument

__all__ = [
    'IIDBError',
    'IDBError',
    'AbortError',
    'ConstraintError',
    'DataCloneError',
    'DataError',
    'InvalidAccessError',
    'InvalidStateError',
    'KeyPathSyntaxError',
    'NotFoundError',
    'ReadOnlyError',
    'SchedulerError',
    'TransactionInactiveError',
    'VersionError',
    'IDBErrorCode',
]

###
# Exceptions
###

class IIDBError(IException):
    """
    A failure of a storage operation.
    """

    name = TextLine(
        title=u"The platform name of the failure, e.g. ``ConstraintError``",
        required=True)


@implementer(IIDBError)
class IDBError(Exception):
    """
    Base class for all storage failures.

    Failures detected while applying a request are stored on the
    request's ``error`` and announced through its ``error`` event.
    Misuse of the API (wrong state, wrong scope, read-only writes) is
    raised directly from the offending call.
    """

    name = 'UnknownError'

    def __init__(self, message=None):
        if message is None:
            message = self.__doc__.strip().splitlines()[0]
        super(IDBError, self).__init__(message)
        self.message = message

    def __repr__(self):
        return '<%s name=%r message=%r>' % (
            type(self).__name__, self.name, self.message
        )


class NotFoundError(IDBError):
    """The requested database, store, index or key was not found."""
    name = 'NotFoundError'


class ConstraintError(IDBError):
    """A mutation would violate a uniqueness constraint."""
    name = 'ConstraintError'


class DataError(IDBError):
    """The data supplied does not meet the operation's requirements."""
    name = 'DataError'


class DataCloneError(IDBError):
    """The value cannot be stored because it cannot be cloned."""
    name = 'DataCloneError'


class KeyPathSyntaxError(DataError):
    """The key path is not a valid key path."""
    name = 'SyntaxError'


class InvalidStateError(IDBError):
    """The operation is not allowed in the object's current state."""
    name = 'InvalidStateError'


class TransactionInactiveError(InvalidStateError):
    """The transaction is no longer accepting requests."""
    name = 'TransactionInactiveError'


class InvalidAccessError(IDBError):
    """The combination of parameters is not allowed."""
    name = 'InvalidAccessError'


class ReadOnlyError(IDBError):
    """A mutation was attempted in a read-only transaction."""
    name = 'ReadOnlyError'


class VersionError(IDBError):
    """The requested version is lower than the existing version."""
    name = 'VersionError'


class AbortError(IDBError):
    """The transaction was aborted."""
    name = 'AbortError'


class SchedulerError(Exception):
    """
    The scheduler was misused, or a handler kept re-arming itself past
    the configured turn limit.
    """


class IDBErrorCode(object):
    """
    Platform error names, for comparison with ``IDBError.name``.
    """
    UNKNOWN_ERROR = 0
    CONSTRAINT_ERROR = ConstraintError.name
    DATA_ERROR = DataError.name
    TRANSACTION_INACTIVE_ERROR = TransactionInactiveError.name
    READ_ONLY_ERROR = ReadOnlyError.name
    VERSION_ERROR = VersionError.name
    NOT_FOUND_ERROR = NotFoundError.name
    INVALID_STATE_ERROR = InvalidStateError.name
    INVALID_ACCESS_ERROR = InvalidAccessError.name
    ABORT_ERROR = AbortError.name
    TIMEOUT_ERROR = 'TimeoutError'
    QUOTA_EXCEEDED_ERROR = 'QuotaExceededError'


###
# Scheduling and events
###

class IScheduler(Interface):
    """
    A single-threaded, cooperative FIFO of deferred tasks.

    Each task run is one *turn*. Nothing here ever runs a task from
    inside the call that queued it.
    """

    pending = Int(
        title=u"The number of queued tasks",
        min=0)

    def call_soon(func, *args):
        """
        Queue ``func(*args)`` to run in a later turn.
        """

    def run_once():
        """
        Run the oldest queued task, if any.

        :return: Whether a task was run.
        """

    def run_until_idle():
        """
        Run turns until no tasks remain.

        :raises SchedulerError: If called re-entrantly or the turn limit
           is exceeded.
        """

    def report_handler_error(exc):
        """
        Record an exception that escaped an event handler.
        """


class IEventTarget(Interface):
    """
    Something event handlers can be attached to.

    For each event type ``t`` the object may also have an ``on<t>``
    attribute holding a single handler; it's called before listeners
    added with :meth:`add_event_listener`.
    """

    def add_event_listener(type, listener):
        """
        Call ``listener(event)`` for each event of *type*.
        """

    def remove_event_listener(type, listener):
        """
        Stop calling *listener*. Unknown listeners are ignored.
        """

    def dispatch_event(event):
        """
        Deliver *event* to this object (and its parents if the event
        bubbles).

        :return: False if a handler called ``event.prevent_default()``.
        """


class IRequest(IEventTarget):
    """
    The handle for one storage operation.

    The outcome of the operation is determined when the operation is
    issued. It is announced to ``success`` or ``error`` handlers only
    in a later scheduler turn.
    """

    ready_state = Choice(
        title=u"Whether the outcome has been announced",
        values=('pending', 'done'))

    result = Attribute("The result of a successful operation, or None.")
    error = Attribute("The IDBError of a failed operation, or None.")
    source = Attribute("The store, index or cursor that issued the request, or None.")
    transaction = Attribute("The owning transaction, or None.")


class ITransactionState(Interface):
    """
    One phase of a transaction's lifecycle.

    The transaction delegates lifecycle decisions to its current
    state object, so each transition is explicit.
    """

    name = Choice(
        title=u"The lifecycle phase",
        values=('active', 'committing', 'committed', 'aborted'))

    accepts_requests = Bool(
        title=u"Whether new requests may be issued")

    def check_active(transaction):
        """
        Raise :class:`TransactionInactiveError` unless requests may be issued.
        """

    def commit(transaction):
        """
        Begin committing *transaction*, or raise :class:`InvalidStateError`.
        """

    def abort(transaction, error):
        """
        Abort *transaction*, or raise :class:`InvalidStateError`.
        """


class ITransaction(IEventTarget):
    """
    A group of operations against a declared set of stores.

    The transaction commits by itself once a turn ends with no
    outstanding requests, firing ``complete``. An explicit
    :meth:`abort`, or an unacknowledged failed request, reverts its
    writes and fires ``abort`` instead.
    """

    mode = Choice(
        title=u"The access mode",
        values=('readonly', 'readwrite', 'versionchange'))

    state = Choice(
        title=u"The lifecycle phase",
        values=('active', 'committing', 'committed', 'aborted'))

    object_store_names = List(
        title=u"The names of the stores in scope, sorted",
        value_type=TextLine())

    db = Attribute("The IDatabase connection the transaction belongs to.")
    error = Attribute("The error that caused an abort, or None.")

    def object_store(name):
        """
        Return the IObjectStore for *name*.

        :raises InvalidStateError: If *name* isn't in scope.
        """

    def commit():
        """
        Stop accepting requests and commit once the outstanding ones
        have been announced.
        """

    def abort():
        """
        Revert all writes and fail all unannounced requests with
        :class:`AbortError`.
        """


###
# Storage
###

class IDatabase(IEventTarget):
    """
    A connection to a named, versioned database.
    """

    name = TextLine(title=u"The database name")
    version = Int(title=u"The schema version", min=0)
    object_store_names = List(
        title=u"The names of the stores, sorted",
        value_type=TextLine())
    closed = Bool(title=u"Whether close() has been called")

    def create_object_store(name, key_path=None, auto_increment=False):
        """
        Create a store. Only allowed during an upgrade.
        """

    def delete_object_store(name):
        """
        Delete a store and its records. Only allowed during an upgrade.
        """

    def transaction(store_names, mode='readonly', durability='default'):
        """
        Begin an ITransaction scoped to *store_names*.
        """

    def close():
        """
        Close the connection. Running transactions are unaffected.
        """


class IQueryable(Interface):
    """
    The read operations shared by stores and indexes.

    Wherever a *query* is accepted it may be a key or a
    :class:`memidb.keys.KeyRange`.
    """

    def get(query):
        """Request the first matching value."""

    def get_key(query):
        """Request the first matching primary key."""

    def get_all(query=None, count=None):
        """Request up to *count* matching values, in key order."""

    def get_all_keys(query=None, count=None):
        """Request up to *count* matching primary keys, in key order."""

    def count(query=None):
        """Request the number of matching entries."""

    def open_cursor(query=None, direction='next'):
        """Request an ICursor (with values) over matching entries."""

    def open_key_cursor(query=None, direction='next'):
        """Request an ICursor (without values) over matching entries."""


class IObjectStore(IQueryable):
    """
    A store, as seen from one transaction.
    """

    name = TextLine(title=u"The store name")
    key_path = Attribute("The key path, or None for out-of-line keys.")
    auto_increment = Bool(title=u"Whether keys are generated")
    index_names = List(
        title=u"The names of the indexes, sorted",
        value_type=TextLine())
    transaction = Attribute("The owning ITransaction")

    def add(value, key=None):
        """Request inserting *value*; fails if the key exists."""

    def put(value, key=None):
        """Request inserting or replacing *value*."""

    def delete(query):
        """Request deleting every matching record."""

    def clear():
        """Request deleting all records."""

    def index(name):
        """Return the IIndex called *name*."""

    def create_index(name, key_path, unique=False, multi_entry=False):
        """Create an index. Only allowed during an upgrade."""

    def delete_index(name):
        """Delete an index. Only allowed during an upgrade."""


class IIndex(IQueryable):
    """
    A secondary index, as seen from one transaction.
    """

    name = TextLine(title=u"The index name")
    key_path = Attribute("The key path.")
    unique = Bool(title=u"Whether index keys must be unique")
    multi_entry = Bool(title=u"Whether array values produce one entry per element")
    object_store = Attribute("The IObjectStore the index belongs to.")


class ICursor(Interface):
    """
    A position in an ordered traversal of a store or index.
    """

    source = Attribute("The IObjectStore or IIndex being traversed.")
    direction = Choice(
        title=u"The traversal direction",
        values=('next', 'nextunique', 'prev', 'prevunique'))
    key = Attribute("The current key, or None once exhausted.")
    primary_key = Attribute("The current primary key, or None once exhausted.")
    exhausted = Bool(title=u"Whether every qualifying entry has been visited")
    request = Attribute("The IRequest re-announced after each move.")

    def advance(count):
        """Skip *count* entries."""

    def continue_(key=None):
        """Move to the next entry, or the first entry at or past *key*."""

    def continue_primary_key(key, primary_key):
        """Move to the first entry at or past (*key*, *primary_key*)."""

    def update(value):
        """Request replacing the record under the cursor."""

    def delete():
        """Request deleting the record under the cursor."""


class IRegistry(Interface):
    """
    The catalog of named databases, and the entry point for opening them.
    """

    scheduler = Attribute("The IScheduler announcing every outcome.")

    def open(name, version=None):
        """
        Request a connection, upgrading the database if needed.
        """

    def delete_database(name):
        """
        Request deleting a database.
        """

    def databases():
        """
        Request a list of ``{'name': ..., 'version': ...}`` mappings.
        """

    def cmp(first, second):
        """
        Compare two keys, returning -1, 0 or 1.
        """
