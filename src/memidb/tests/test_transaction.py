# -*- coding: utf-8 -*-
"""
Tests for transaction.py.
"""

import unittest

from hamcrest import assert_that
from hamcrest import has_item
from nti.testing.matchers import validly_provides
from nti.testing.matchers import verifiably_provides

from memidb.interfaces import AbortError
from memidb.interfaces import ConstraintError
from memidb.interfaces import ITransaction
from memidb.interfaces import ITransactionState
from memidb.interfaces import InvalidAccessError
from memidb.interfaces import InvalidStateError
from memidb.interfaces import NotFoundError
from memidb.interfaces import TransactionInactiveError
from memidb.tests import RegistryTestCase

STORES = (
    ('a', {'key_path': 'id'}),
    ('b', {'key_path': 'id'}),
)


class TestStates(unittest.TestCase):

    def test_states_provide_interface(self):
        from .. import transaction
        for state in (transaction.ACTIVE, transaction.COMMITTING,
                      transaction.COMMITTED, transaction.ABORTED):
            assert_that(state, verifiably_provides(ITransactionState))

    def test_finished_states_refuse_everything(self):
        from .. import transaction
        for state in (transaction.COMMITTED, transaction.ABORTED):
            self.assertTrue(state.finished)
            with self.assertRaises(TransactionInactiveError):
                state.check_active(None)
            with self.assertRaises(InvalidStateError):
                state.commit(None)
            with self.assertRaises(InvalidStateError):
                state.abort(None, None)

    def test_committing_refuses_requests(self):
        from .. import transaction
        state = transaction.COMMITTING
        self.assertFalse(state.accepts_requests)
        self.assertFalse(state.finished)
        with self.assertRaises(TransactionInactiveError):
            state.check_active(None)
        with self.assertRaises(InvalidStateError):
            state.commit(None)


class TestTransaction(RegistryTestCase):

    def setUp(self):
        super(TestTransaction, self).setUp()
        self.db = self.open_with_stores(*STORES)
        self.events = []

    def _record(self, target, *types):
        for event_type in types:
            target.add_event_listener(
                event_type,
                lambda e, t=event_type, name=getattr(target, 'name', None): self.events.append(
                    (t, name) if name else t))

    def test_provides(self):
        txn = self.db.transaction(['a', 'b'])
        assert_that(txn, validly_provides(ITransaction))
        self.assertEqual(txn.object_store_names, ['a', 'b'])
        self.assertEqual(txn.mode, 'readonly')
        self.assertEqual(txn.durability, 'default')
        self.assertIs(txn.db, self.db)

    def test_creation_errors(self):
        with self.assertRaises(InvalidAccessError):
            self.db.transaction([])
        with self.assertRaises(NotFoundError):
            self.db.transaction(['a', 'nope'])
        with self.assertRaises(TypeError):
            self.db.transaction('a', 'versionchange')
        self.db.close()
        with self.assertRaises(InvalidStateError):
            self.db.transaction('a')

    def test_scope(self):
        txn = self.db.transaction('a')
        self.assertIs(txn.object_store('a'), txn.object_store('a'))
        with self.assertRaises(InvalidStateError) as exc:
            txn.object_store('b')
        self.assertEqual(exc.exception.name, 'InvalidStateError')
        self.assertNotIsInstance(exc.exception, NotFoundError)

    def test_empty_transaction_commits_next_turn(self):
        txn = self.db.transaction('a')
        self._record(txn, 'complete', 'abort')
        self.assertEqual(txn.state, 'active')
        self.registry.scheduler.run_once()
        self.assertEqual(txn.state, 'committed')
        self.assertEqual(self.events, ['complete'])

    def test_complete_after_all_requests(self):
        txn = self.db.transaction('a', 'readwrite')
        self._record(txn, 'complete')
        store = txn.object_store('a')
        for i in range(3):
            request = store.put({'id': i})
            request.onsuccess = lambda e, i=i: self.events.append(i)
        self.drain()
        self.assertEqual(self.events, [0, 1, 2, 'complete'])

    def test_requests_from_handlers_keep_transaction_alive(self):
        txn = self.db.transaction('a', 'readwrite')
        self._record(txn, 'complete')
        store = txn.object_store('a')
        def chain(event):
            self.events.append('first')
            store.put({'id': 2}).onsuccess = lambda e: self.events.append('second')
        store.put({'id': 1}).onsuccess = chain
        self.drain()
        self.assertEqual(self.events, ['first', 'second', 'complete'])
        self.assertEqual(sorted(self.registry.get_store('db', 'a')), [1, 2])

    def test_explicit_abort(self):
        txn = self.db.transaction(['a', 'b'], 'readwrite')
        self._record(txn, 'complete', 'abort')
        self._record(self.db, 'abort')
        store_a = txn.object_store('a')
        first = store_a.put({'id': 1})
        second = txn.object_store('b').put({'id': 1})
        first.onerror = lambda e: self.events.append('first error')
        second.onerror = lambda e: self.events.append('second error')
        txn.abort()
        self.assertEqual(txn.state, 'aborted')
        self.assertIsInstance(first.error, AbortError)
        self.assertIsNone(first.result)
        # Writes are reverted immediately.
        self.assertEqual(self.registry.get_database('db'), {'a': {}, 'b': {}})
        self.assertEqual(self.events, [])
        self.drain()
        self.assertEqual(self.events, ['first error', 'second error', 'abort', ('abort', 'db')])
        self.assertIsInstance(txn.error, AbortError)
        with self.assertRaises(InvalidStateError):
            txn.abort()
        with self.assertRaises(TransactionInactiveError):
            store_a.put({'id': 3})
        with self.assertRaises(InvalidStateError):
            txn.object_store('a')

    def test_abort_restores_existing_data(self):
        self.write(self.db, 'a', {'id': 1, 'v': 'old'})
        txn = self.db.transaction('a', 'readwrite')
        store = txn.object_store('a')
        store.put({'id': 1, 'v': 'new'})
        store.put({'id': 2})
        store.delete(1)
        txn.abort()
        self.drain()
        self.assertEqual(self.registry.get_store('db', 'a'), {1: {'id': 1, 'v': 'old'}})

    def test_unacknowledged_error_aborts(self):
        self.write(self.db, 'a', {'id': 1})
        txn = self.db.transaction('a', 'readwrite')
        self._record(txn, 'complete', 'abort', 'error')
        store = txn.object_store('a')
        store.put({'id': 2})
        failed = store.add({'id': 1})
        after = store.put({'id': 3})
        self.drain()
        self.assertEqual(txn.state, 'aborted')
        self.assertIsInstance(txn.error, ConstraintError)
        self.assertIs(txn.error, failed.error)
        self.assertIsInstance(after.error, AbortError)
        self.assertEqual(self.events, ['error', 'error', 'abort'])
        self.assertEqual(sorted(self.registry.get_store('db', 'a')), [1])

    def test_error_acknowledged_on_transaction(self):
        self.write(self.db, 'a', {'id': 1})
        txn = self.db.transaction('a', 'readwrite')
        txn.onerror = lambda e: e.prevent_default()
        store = txn.object_store('a')
        store.add({'id': 1})
        store.put({'id': 2})
        self.drain()
        self.assertEqual(txn.state, 'committed')
        self.assertEqual(sorted(self.registry.get_store('db', 'a')), [1, 2])

    def test_error_bubbles_to_database(self):
        self.write(self.db, 'a', {'id': 1})
        self.db.onerror = lambda e: self.events.append((e.type, e.target.error.name))
        txn = self.db.transaction('a', 'readwrite')
        txn.object_store('a').add({'id': 1})
        self.drain()
        self.assertEqual(self.events, [('error', 'ConstraintError')])
        self.assertEqual(txn.state, 'aborted')

    def test_handler_exception_aborts(self):
        txn = self.db.transaction('a', 'readwrite')
        store = txn.object_store('a')
        def boom(event):
            raise ValueError('boom')
        store.put({'id': 1}).onsuccess = boom
        with self.assertRaises(ValueError):
            self.drain()
        self.assertEqual(txn.state, 'aborted')
        self.assertIsInstance(txn.error, AbortError)
        self.assertEqual(self.registry.get_store('db', 'a'), {})

    def test_explicit_commit(self):
        txn = self.db.transaction('a', 'readwrite')
        self._record(txn, 'complete')
        store = txn.object_store('a')
        request = store.put({'id': 1})
        request.onsuccess = lambda e: self.events.append('put')
        txn.commit()
        self.assertEqual(txn.state, 'committing')
        with self.assertRaises(TransactionInactiveError):
            store.put({'id': 2})
        with self.assertRaises(InvalidStateError):
            txn.commit()
        self.drain()
        self.assertEqual(self.events, ['put', 'complete'])
        self.assertEqual(txn.state, 'committed')

    def test_abort_while_committing(self):
        txn = self.db.transaction('a', 'readwrite')
        txn.object_store('a').put({'id': 1})
        txn.commit()
        txn.abort()
        self.drain()
        self.assertEqual(txn.state, 'aborted')
        self.assertEqual(self.registry.get_store('db', 'a'), {})

    def test_overlapping_readwrite_not_serialized(self):
        one = self.db.transaction('a', 'readwrite').object_store('a')
        two = self.db.transaction('a', 'readwrite').object_store('a')
        one.put({'id': 1, 'by': 'one'})
        seen = two.get(1)
        self.drain()
        self.assertEqual(seen.result, {'id': 1, 'by': 'one'})

    def test_transaction_metrics(self):
        from perfmetrics import set_statsd_client
        from perfmetrics import statsd_client
        from perfmetrics.testing import FakeStatsDClient
        from perfmetrics.testing.matchers import is_counter
        client = FakeStatsDClient()
        self.addCleanup(set_statsd_client, statsd_client())
        set_statsd_client(client)

        self.db.transaction('a')
        aborted = self.db.transaction('a')
        aborted.abort()
        self.drain()
        assert_that(client, has_item(is_counter('memidb.transaction.commit')))
        assert_that(client, has_item(is_counter('memidb.transaction.abort')))


if __name__ == '__main__':
    unittest.main()
