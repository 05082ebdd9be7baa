# -*- coding: utf-8 -*-
"""
Tests for cursor.py.
"""

import unittest

from hamcrest import assert_that
from nti.testing.matchers import validly_provides

from memidb.interfaces import DataError
from memidb.interfaces import ICursor
from memidb.interfaces import InvalidAccessError
from memidb.interfaces import InvalidStateError
from memidb.interfaces import ReadOnlyError
from memidb.keys import KeyRange
from memidb.tests import RegistryTestCase

ITEMS = ('items', {'key_path': 'id'}, [
    ('color', 'color', {}),
])

COLORS = ((1, 'red'), (2, 'blue'), (3, 'red'), (4, 'green'), (5, 'blue'))


class TestCursor(RegistryTestCase):

    def setUp(self):
        super(TestCursor, self).setUp()
        self.db = self.open_with_stores(ITEMS)
        self.write(self.db, 'items', *[{'id': i, 'color': c} for i, c in COLORS])

    def _store(self, mode='readonly'):
        return self.db.transaction('items', mode).object_store('items')

    def _index(self, mode='readonly'):
        return self._store(mode).index('color')

    def _walk(self, request, step=None):
        """
        Iterate the cursor of *request* to the end, recording
        ``(key, primary_key)`` at each position. *step*, if given, is
        called with the cursor instead of ``continue_()``.
        """
        seen = []
        def onsuccess(event):
            cursor = event.target.result
            if cursor is None:
                return
            seen.append((cursor.key, cursor.primary_key))
            if step is None:
                cursor.continue_()
            else:
                step(cursor)
        request.onsuccess = onsuccess
        self.drain()
        self.assertEqual(request.ready_state, 'done')
        return seen

    def test_provides(self):
        request = self._store().open_cursor()
        assert_that(request.result, validly_provides(ICursor))
        self.assertIs(request.source, request.result.source)
        self.assertEqual(request.result.direction, 'next')

    def test_store_directions(self):
        self.assertEqual([k for k, _ in self._walk(self._store().open_cursor())],
                         [1, 2, 3, 4, 5])
        self.assertEqual([k for k, _ in self._walk(self._store().open_cursor(None, 'prev'))],
                         [5, 4, 3, 2, 1])
        # Primary keys are unique, so the unique directions see everything.
        self.assertEqual([k for k, _ in self._walk(self._store().open_key_cursor(
            None, 'prevunique'))], [5, 4, 3, 2, 1])

    def test_index_directions(self):
        self.assertEqual(
            self._walk(self._index().open_cursor()),
            [('blue', 2), ('blue', 5), ('green', 4), ('red', 1), ('red', 3)])
        self.assertEqual(
            self._walk(self._index().open_cursor(None, 'prev')),
            [('red', 3), ('red', 1), ('green', 4), ('blue', 5), ('blue', 2)])
        self.assertEqual(
            self._walk(self._index().open_key_cursor(None, 'nextunique')),
            [('blue', 2), ('green', 4), ('red', 1)])
        # The first record of each key, even going backwards.
        self.assertEqual(
            self._walk(self._index().open_key_cursor(None, 'prevunique')),
            [('red', 1), ('green', 4), ('blue', 2)])

    def test_ranges(self):
        self.assertEqual(self._walk(self._index().open_cursor('red')),
                         [('red', 1), ('red', 3)])
        self.assertEqual(
            self._walk(self._index().open_key_cursor(
                KeyRange.bound('blue', 'red', True, False), 'prev')),
            [('red', 3), ('red', 1), ('green', 4)])
        self.assertEqual([k for k, _ in self._walk(self._store().open_cursor(
            KeyRange.bound(2, 4, upper_open=True)))], [2, 3])

    def test_empty_range(self):
        request = self._store().open_cursor(KeyRange.lower_bound(10), 'prev')
        self.assertIsNone(request.result)
        self.assertEqual(self._walk(request), [])
        self.assertIsNone(request.error)

    def test_invalid_direction(self):
        with self.assertRaises(TypeError):
            self._store().open_cursor(None, 'sideways')

    def test_values(self):
        values = []
        def step(cursor):
            values.append(cursor.value)
            cursor.value['color'] = 'changed'
            cursor.continue_()
        self._walk(self._index().open_cursor('blue'), step)
        self.assertEqual(values, [{'id': 2, 'color': 'changed'}, {'id': 5, 'color': 'changed'}])
        self.assertEqual(self.registry.get_store('db', 'items')[2]['color'], 'blue')

    def test_key_cursor_has_no_value(self):
        request = self._store().open_key_cursor()
        self.assertFalse(hasattr(request.result, 'value'))

    def test_continue_to_key(self):
        errors = []
        def step(cursor):
            if cursor.key == 'blue':
                try:
                    cursor.continue_('blue')
                except DataError as e:
                    errors.append(e)
                cursor.continue_('red')
            else:
                cursor.continue_()
        self.assertEqual(self._walk(self._index().open_cursor(), step),
                         [('blue', 2), ('red', 1), ('red', 3)])
        self.assertLength(errors, 1)

    def test_continue_to_key_backwards(self):
        def step(cursor):
            cursor.continue_('blue' if cursor.key == 'red' else None)
        self.assertEqual(self._walk(self._index().open_key_cursor(None, 'prev'), step),
                         [('red', 3), ('blue', 5), ('blue', 2)])

    def test_advance(self):
        request = self._store().open_cursor()
        with self.assertRaises(TypeError):
            request.result.advance(0)
        def step(cursor):
            cursor.advance(2)
        self.assertEqual([k for k, _ in self._walk(request, step)], [1, 3, 5])

    def test_continue_primary_key(self):
        def step(cursor):
            if cursor.primary_key == 2:
                cursor.continue_primary_key('red', 3)
            else:
                cursor.continue_()
        self.assertEqual(self._walk(self._index().open_key_cursor(), step),
                         [('blue', 2), ('red', 3)])

    def test_continue_primary_key_misuse(self):
        errors = []
        def step(cursor):
            for args in (('red', 3), ('blue', 1)):
                try:
                    cursor.continue_primary_key(*args)
                except (InvalidAccessError, DataError) as e:
                    errors.append(type(e))
        self._walk(self._store().open_cursor(), step)
        self._walk(self._index().open_key_cursor(None, 'nextunique'), step)
        self._walk(self._index().open_key_cursor(None, 'prev'), step)
        self.assertEqual(errors, [InvalidAccessError] * 4 + [DataError])

    def test_cannot_move_twice(self):
        errors = []
        def step(cursor):
            cursor.continue_()
            try:
                cursor.continue_()
            except InvalidStateError as e:
                errors.append(e)
        self._walk(self._store().open_cursor(), step)
        self.assertLength(errors, 5)

    def test_cannot_move_when_exhausted(self):
        request = self._store().open_cursor()
        cursor = request.result
        self._walk(request)
        self.assertTrue(cursor.exhausted)
        self.assertIsNone(request.result)
        with self.assertRaises(InvalidStateError):
            cursor.continue_()

    def test_sees_live_changes(self):
        store = self._store('readwrite')
        def step(cursor):
            if cursor.primary_key == 1:
                store.delete(2)
                store.put({'id': 6, 'color': 'red'})
            cursor.continue_()
        self.assertEqual([k for k, _ in self._walk(store.open_cursor(), step)],
                         [1, 3, 4, 5, 6])

    def test_update(self):
        def step(cursor):
            if cursor.key == 'blue':
                value = dict(cursor.value, color='purple')
                request = cursor.update(value)
                self.assertIs(request.source, cursor)
                self.assertEqual(request.result, cursor.primary_key)
                # The cursor itself is unchanged.
                self.assertEqual(cursor.value['color'], 'blue')
            cursor.continue_()
        # Updated entries move ahead of the cursor and are visited again.
        self.assertEqual(self._walk(self._index('readwrite').open_cursor(), step),
                         [('blue', 2), ('blue', 5), ('green', 4), ('purple', 2),
                          ('purple', 5), ('red', 1), ('red', 3)])
        self.assertEqual(self.table('items').indexes['color'].mapping(),
                         [('green', 4), ('purple', 2), ('purple', 5), ('red', 1), ('red', 3)])

    def test_update_must_keep_key(self):
        errors = []
        def step(cursor):
            try:
                cursor.update({'id': 99, 'color': 'red'})
            except DataError as e:
                errors.append(e)
        self._walk(self._store('readwrite').open_cursor(), step)
        self.assertLength(errors, 1)
        self.assertNotIn(99, self.registry.get_store('db', 'items'))

    def test_delete(self):
        def step(cursor):
            cursor.delete()
            cursor.continue_()
        self.assertEqual(self._walk(self._index('readwrite').open_cursor('red'), step),
                         [('red', 1), ('red', 3)])
        self.assertEqual(sorted(self.registry.get_store('db', 'items')), [2, 4, 5])

    def test_write_misuse(self):
        errors = []
        def step(cursor):
            for method, args in (('update', ({'id': 1},)), ('delete', ())):
                try:
                    getattr(cursor, method)(*args)
                except (ReadOnlyError, InvalidStateError) as e:
                    errors.append(type(e))
        self._walk(self._store().open_cursor(), step)
        self._walk(self._store('readwrite').open_key_cursor(), step)
        self.assertEqual(errors, [ReadOnlyError] * 2 + [InvalidStateError] * 2)

    def test_repr(self):
        cursor = self._index().open_cursor().result
        self.assertEqual(repr(cursor),
                         "<CursorWithValue next key='blue' primary_key=2>")


if __name__ == '__main__':
    unittest.main()
