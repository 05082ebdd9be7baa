"""memidb.tests package"""

import unittest

from memidb.options import Options
from memidb.registry import Registry


class TestCase(unittest.TestCase):
    """
    General tests, with support for assertions and cleanups.
    """

    none = unittest.TestCase.assertIsNone

    def _closing(self, o):
        """
        Close the object using its 'close' method *after* invoking
        all of the `tearDown` stack, and even running if `setUp`
        fails.

        Returns the given object.
        """
        self.addCleanup(o.close)
        return o

    def assertIsEmpty(self, container, msg=None):
        self.assertLength(container, 0, msg)

    assertEmpty = assertIsEmpty

    def assertLength(self, container, length, msg=None):
        self.assertEqual(len(container), length,
                         '%s -- %s' % (msg, container) if msg else container)


class RegistryTestCase(TestCase):
    """
    Tests that need a :class:`Registry`, and helpers to open databases
    and run the scheduler.
    """

    DB_NAME = 'db'

    def _makeOptions(self):
        return Options(max_turns=10000, raise_handler_errors=True)

    def setUp(self):
        super(RegistryTestCase, self).setUp()
        self.registry = self._closing(Registry(self._makeOptions()))

    def drain(self):
        return self.registry.run_until_idle()

    def open_request(self, name=None, version=1, upgrade=None):
        """
        Issue an open; *upgrade* is called as ``upgrade(db, transaction, event)``
        from the ``upgradeneeded`` handler.
        """
        request = self.registry.open(name or self.DB_NAME, version)
        if upgrade is not None:
            def onupgradeneeded(event):
                upgrade(event.target.result, event.target.transaction, event)
            request.onupgradeneeded = onupgradeneeded
        return request

    def open_db(self, name=None, version=1, upgrade=None):
        request = self.open_request(name, version, upgrade)
        self.drain()
        self.assertIsNone(request.error)
        self.assertEqual(request.ready_state, 'done')
        return request.result

    def open_with_stores(self, *store_defs, **kwargs):
        """
        Open a database at version 1 with stores created from
        ``(name, kwargs, [(index_name, key_path, index_kwargs)])``
        tuples. The index list may be omitted.
        """
        def upgrade(db, _txn, _event):
            for store_def in store_defs:
                name, store_kw = store_def[0], store_def[1]
                store = db.create_object_store(name, **store_kw)
                for index_name, key_path, index_kw in (store_def[2] if len(store_def) > 2 else ()):
                    store.create_index(index_name, key_path, **index_kw)
        return self.open_db(upgrade=upgrade, **kwargs)

    def write(self, db, store_name, *values):
        """
        Put each value (a value, or a ``(value, key)`` pair for
        out-of-line stores) in one committed transaction.
        """
        txn = db.transaction(store_name, 'readwrite')
        store = txn.object_store(store_name)
        for value in values:
            if isinstance(value, tuple):
                store.put(*value)
            else:
                store.put(value)
        self.drain()
        self.assertEqual(txn.state, 'committed')

    def table(self, store_name, db_name=None):
        """The live record table of a store."""
        return self.registry._databases[db_name or self.DB_NAME].store(store_name)
