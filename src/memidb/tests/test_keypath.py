# -*- coding: utf-8 -*-
"""
Tests for keypath.py.
"""

import unittest
from datetime import datetime

from memidb.interfaces import DataCloneError
from memidb.interfaces import DataError
from memidb.interfaces import KeyPathSyntaxError
from memidb.keypath import MISSING


class TestValidateKeyPath(unittest.TestCase):

    def _callFUT(self, key_path):
        from ..keypath import validate_key_path
        return validate_key_path(key_path)

    def test_valid(self):
        self.assertIsNone(self._callFUT(None))
        self.assertEqual(self._callFUT(''), '')
        self.assertEqual(self._callFUT('a.b_c.d1'), 'a.b_c.d1')
        self.assertEqual(self._callFUT(('a', 'b.c')), ['a', 'b.c'])

    def test_invalid(self):
        for bad in ('a..b', '1a', 'a b', '.a', [], ['a', 1], [['a']], 42):
            with self.assertRaises(KeyPathSyntaxError, msg=repr(bad)):
                self._callFUT(bad)

    def test_syntax_error_is_data_error(self):
        with self.assertRaises(DataError) as exc:
            self._callFUT('-')
        self.assertEqual(exc.exception.name, 'SyntaxError')


class TestEvaluateKeyPath(unittest.TestCase):

    def _callFUT(self, value, key_path):
        from ..keypath import evaluate_key_path
        return evaluate_key_path(value, key_path)

    def test_empty_path_is_value(self):
        self.assertEqual(self._callFUT(5, ''), 5)

    def test_nested(self):
        value = {'address': {'city': 'Paris'}}
        self.assertEqual(self._callFUT(value, 'address.city'), 'Paris')
        self.assertIs(self._callFUT(value, 'address.zip'), MISSING)
        self.assertIs(self._callFUT(value, 'address.city.name'), MISSING)
        self.assertIs(self._callFUT(5, 'a'), MISSING)

    def test_length(self):
        self.assertEqual(self._callFUT({'tags': ['a', 'b']}, 'tags.length'), 2)
        self.assertEqual(self._callFUT('abc', 'length'), 3)
        self.assertEqual(self._callFUT({'length': 7}, 'length'), 7)

    def test_sequence(self):
        value = {'a': 1, 'b': {'c': 'x'}}
        self.assertEqual(self._callFUT(value, ['a', 'b.c']), [1, 'x'])
        self.assertIs(self._callFUT(value, ['a', 'z']), MISSING)

    def test_missing_is_falsey(self):
        self.assertFalse(MISSING)
        self.assertEqual(repr(MISSING), 'MISSING')


class TestInjectKey(unittest.TestCase):

    def _callFUT(self, value, key_path, key):
        from ..keypath import inject_key
        inject_key(value, key_path, key)
        return value

    def test_top_level(self):
        self.assertEqual(self._callFUT({'name': 'a'}, 'id', 1), {'name': 'a', 'id': 1})

    def test_creates_intermediates(self):
        self.assertEqual(self._callFUT({}, 'meta.id', 3), {'meta': {'id': 3}})

    def test_not_a_dict(self):
        with self.assertRaises(DataError):
            self._callFUT('str', 'id', 1)
        with self.assertRaises(DataError):
            self._callFUT({'meta': 5}, 'meta.id', 1)


class TestCloneValue(unittest.TestCase):

    def _callFUT(self, value):
        from ..keypath import clone_value
        return clone_value(value)

    def test_scalars_are_shared(self):
        when = datetime(2020, 5, 1)
        for value in (None, True, 1, 1.5, 'a', b'b', when):
            self.assertIs(self._callFUT(value), value)

    def test_containers_copied(self):
        value = {'a': [1, {'b': 2}], 't': (1, 2), 's': frozenset([1]), 'ba': bytearray(b'x')}
        clone = self._callFUT(value)
        self.assertEqual(clone, {'a': [1, {'b': 2}], 't': [1, 2], 's': {1}, 'ba': bytearray(b'x')})
        self.assertIsNot(clone['a'], value['a'])
        self.assertIsNot(clone['a'][1], value['a'][1])
        self.assertIsInstance(clone['s'], set)
        self.assertIsNot(clone['ba'], value['ba'])

    def test_shared_and_cyclic_references(self):
        shared = {'x': 1}
        value = {'one': shared, 'two': shared}
        value['self'] = value
        clone = self._callFUT(value)
        self.assertIs(clone['one'], clone['two'])
        self.assertIs(clone['self'], clone)
        self.assertIsNot(clone, value)

    def test_unsupported(self):
        with self.assertRaises(DataCloneError):
            self._callFUT({'f': lambda: None})
        with self.assertRaises(DataCloneError):
            self._callFUT({1: 'non-string key'})
        with self.assertRaises(DataCloneError):
            self._callFUT([object()])


if __name__ == '__main__':
    unittest.main()
