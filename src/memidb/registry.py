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
The registry of named databases.

A :class:`Registry` is the entry point: it opens, upgrades and deletes
databases, and owns the :class:`memidb.scheduler.Scheduler` that
announces every outcome. Registries are independent of each other;
create one per test.
"""

from zope.interface import implementer

from ._util import log_timed
from .catalog import DatabaseState
from .database import Database
from .events import VersionChangeEvent
from .interfaces import AbortError
from .interfaces import IDBError
from .interfaces import IRegistry
from .interfaces import VersionError
from .keypath import MISSING
from .keypath import clone_value
from .keypath import evaluate_key_path
from .keypath import inject_key
from .keys import cmp as _cmp
from .options import Options
from .request import OpenDBRequest
from .request import Request
from .scheduler import Scheduler
from .transaction import VERSIONCHANGE
from .transaction import Transaction

logger = __import__('logging').getLogger(__name__)


def _validate_version(version):
    if version is None:
        return None
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        raise TypeError('The version must be a positive integer, not %r' % (version,))
    return version


@implementer(IRegistry)
class Registry(object):

    def __init__(self, options=None, scheduler=None):
        self.options = options or Options()
        self.scheduler = scheduler if scheduler is not None else Scheduler(self.options)
        # name -> DatabaseState
        self._databases = {}
        # name -> [Database]
        self._connections = {}
        # name -> [(func, args)] waiting for an upgrade to finish
        self._waiting = {}

    def run_until_idle(self):
        return self.scheduler.run_until_idle()

    ###
    # Announcements
    ###

    def _announce(self, request):
        event = request._announce()
        self._report_handler_errors(event)

    def _report_handler_errors(self, event):
        for exc in event.handler_errors:
            self.scheduler.report_handler_error(exc)

    def _defer_while_upgrading(self, name, func, *args):
        state = self._databases.get(name)
        if state is not None and state.upgrade_transaction is not None:
            logger.debug("Waiting for the upgrade of %r to finish", name)
            self._waiting.setdefault(name, []).append((func, args))
            return True
        return False

    def _resume_waiting(self, name):
        for func, args in self._waiting.pop(name, ()):
            self.scheduler.call_soon(func, *args)

    def _notify_versionchange(self, name, old_version, new_version, exclude=None):
        """
        Tell the open connections to *name* about a version change.

        :return: Whether any of them is still open afterwards.
        """
        still_open = False
        for connection in list(self._connections.get(name, ())):
            if connection is exclude or connection.closed:
                continue
            event = VersionChangeEvent('versionchange', old_version, new_version)
            connection.dispatch_event(event)
            self._report_handler_errors(event)
            if not connection.closed:
                still_open = True
        return still_open

    def _connection_closed(self, connection):
        connections = self._connections.get(connection.name, [])
        if connection in connections:
            connections.remove(connection)

    ###
    # Open
    ###

    def open(self, name, version=None):
        """
        Open a connection to *name*, creating or upgrading it if needed.
        """
        version = _validate_version(version)
        request = OpenDBRequest()
        self.scheduler.call_soon(self._process_open, request, name, version)
        return request

    def _process_open(self, request, name, version):
        if self._defer_while_upgrading(name, self._process_open, request, name, version):
            return

        state = self._databases.get(name)
        old_version = state.version if state is not None else 0
        if version is None:
            version = old_version or self.options.default_version
        if version < old_version:
            request._set_outcome(error=VersionError(
                'Requested version %d of %r is less than the existing version %d' % (
                    version, name, old_version)))
            self._announce(request)
            return

        created = state is None
        if created:
            state = self._databases[name] = DatabaseState(name)
            logger.debug("Created database %r", name)

        connection = Database(self, state)
        self._connections.setdefault(name, []).append(connection)
        if version == old_version:
            request._set_outcome(connection)
            self._announce(request)
        else:
            self._begin_upgrade(request, connection, created, old_version, version)

    def _begin_upgrade(self, request, connection, created, old_version, new_version):
        state = connection._state
        if self._notify_versionchange(state.name, old_version, new_version, exclude=connection):
            event = VersionChangeEvent('blocked', old_version, new_version)
            request.dispatch_event(event)
            self._report_handler_errors(event)

        transaction = Transaction(connection, None, VERSIONCHANGE)
        state.begin_upgrade(transaction)
        state.version = new_version
        connection._upgrade_transaction = transaction
        transaction.add_finish_callback(
            lambda txn: self._finish_upgrade(txn, request, connection, created))
        logger.debug("Upgrading %r from version %d to %d", state.name, old_version, new_version)

        request.transaction = transaction
        request._set_outcome(connection)
        request._mark_done()
        event = VersionChangeEvent('upgradeneeded', old_version, new_version)
        request.dispatch_event(event)
        transaction._handle_handler_errors(event)

    def _finish_upgrade(self, transaction, request, connection, created):
        state = connection._state
        state.end_upgrade(transaction)
        connection._upgrade_transaction = None
        request.transaction = None
        if transaction.state == 'committed':
            logger.debug("Upgraded %r to version %d", state.name, state.version)
        else:
            # The abort has already put the old version and stores back.
            logger.debug("Upgrade of %r aborted; version remains %d", state.name, state.version)
            connection.closed = True
            self._connection_closed(connection)
            if created and self._databases.get(state.name) is state:
                del self._databases[state.name]
            request._set_outcome(error=AbortError('The upgrade transaction was aborted'))
        self.scheduler.call_soon(self._announce, request)
        self._resume_waiting(state.name)

    ###
    # Delete and list
    ###

    def delete_database(self, name):
        """
        Delete *name* and everything in it. Unknown names succeed.
        """
        request = OpenDBRequest()
        self.scheduler.call_soon(self._process_delete, request, name)
        return request

    def _process_delete(self, request, name):
        if self._defer_while_upgrading(name, self._process_delete, request, name):
            return

        state = self._databases.get(name)
        old_version = 0
        if state is not None:
            old_version = state.version
            if self._notify_versionchange(name, old_version, None):
                event = VersionChangeEvent('blocked', old_version, None)
                request.dispatch_event(event)
                self._report_handler_errors(event)
            for connection in list(self._connections.get(name, ())):
                connection.close()
            self._connections.pop(name, None)
            del self._databases[name]
            logger.debug("Deleted database %r at version %d", name, old_version)

        request.old_version = old_version
        request._set_outcome(None)
        self._announce(request)

    def databases(self):
        """
        Request the names and versions of every database.
        """
        request = Request()
        request._set_outcome([
            {'name': name, 'version': state.version}
            for name, state in sorted(self._databases.items())
        ])
        self.scheduler.call_soon(self._announce, request)
        return request

    def cmp(self, first, second):
        return _cmp(first, second)

    ###
    # Fixtures. These bypass requests and transactions entirely.
    ###

    @log_timed
    def seed_database(self, schema):
        """
        Replace the database described by *schema* with one holding
        exactly the stores, indexes and records it lists.

        *schema* is a mapping like those returned by
        :class:`memidb.presets.DatabasePresets`. Records whose key can't
        be determined, or that violate a unique index, are skipped.
        """
        name = schema['name']
        state = DatabaseState(name, _validate_version(schema.get('version', 1)))
        for store_schema in schema.get('stores', ()):
            table = state.create_store(
                store_schema['name'],
                store_schema.get('key_path'),
                store_schema.get('auto_increment', False))
            for index_schema in store_schema.get('indexes', ()):
                state.create_index(
                    table.name,
                    index_schema['name'],
                    index_schema['key_path'],
                    index_schema.get('unique', False),
                    index_schema.get('multi_entry', False))
            for item in store_schema.get('data', ()):
                self._seed_item(table, item)

        self._drop(name)
        self._databases[name] = state
        logger.debug("Seeded %r", state)
        return state

    def _seed_item(self, table, item):
        value = item['value']
        if self.options.clone_values:
            value = clone_value(value)
        key = item.get('key')
        key_path = table.schema.key_path
        try:
            if key is not None and key_path is not None:
                # Keep in-line values self-describing.
                if (isinstance(key_path, str)
                        and evaluate_key_path(value, key_path) is MISSING):
                    inject_key(value, key_path, key)
            table.store(value, key, overwrite=True)
        except IDBError as e:
            logger.warning("Skipping seed item %r for store %r: %s", item, table.name, e)

    def get_database(self, name):
        """
        Return ``{store_name: {primary_key: value}}`` for *name*, or None.
        """
        state = self._databases.get(name)
        return state.as_mapping(self.options.clone_values) if state is not None else None

    def get_store(self, db_name, store_name):
        """
        Return ``{primary_key: value}`` for one store, or None.
        """
        stores = self.get_database(db_name)
        return stores.get(store_name) if stores is not None else None

    def get_all_databases(self):
        clone = self.options.clone_values
        return {
            name: {'version': state.version, 'stores': state.as_mapping(clone)}
            for name, state in self._databases.items()
        }

    def _drop(self, name):
        for connection in self._connections.pop(name, ()):
            connection.closed = True
        self._waiting.pop(name, None)
        self._databases.pop(name, None)

    def clear_all_databases(self):
        for name in list(self._databases):
            self._drop(name)
        self._connections.clear()
        self._waiting.clear()

    def close(self):
        """
        Forget every database and discard anything still queued.
        """
        self.clear_all_databases()
        self.scheduler.clear()

    def __repr__(self):
        return '<%s databases=%s pending=%d>' % (
            type(self).__name__, sorted(self._databases), self.scheduler.pending
        )
