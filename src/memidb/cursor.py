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
Cursors over stores and indexes.

A cursor remembers only its *position* in the table it traverses
(see :mod:`memidb.records`). Every move seeks the live table again from
that position, so records added or removed behind the cursor's back
are seen or skipped as appropriate, and the cursor can never revisit
a position.
"""

from zope.interface import implementer

from .interfaces import DataError
from .interfaces import ICursor
from .interfaces import InvalidAccessError
from .interfaces import InvalidStateError
from .interfaces import ReadOnlyError
from .keypath import MISSING
from .keypath import clone_value
from .keypath import evaluate_key_path
from .keys import encode_key
from .keys import is_valid_key
from .keys import to_range
from .records import tighter_lower
from .records import tighter_upper
from .request import Request

DIRECTIONS = ('next', 'nextunique', 'prev', 'prevunique')


def validate_direction(direction):
    if direction not in DIRECTIONS:
        raise TypeError('Invalid cursor direction %r; expected one of %s' % (
            direction, DIRECTIONS))
    return direction


class CursorRequest(Request):
    """
    The request of a cursor, announced again after every move.

    The cursor may only move again once the previous move has been
    announced.
    """

    def __init__(self, source, transaction, cursor):
        super(CursorRequest, self).__init__(source, transaction)
        self._cursor = cursor

    def _mark_done(self):
        super(CursorRequest, self)._mark_done()
        if not self._cursor.exhausted:
            self._cursor._got_value = True


@implementer(ICursor)
class Cursor(object):
    """
    A cursor that yields keys and primary keys.
    """

    _with_value = False

    key = None
    primary_key = None
    exhausted = False

    def __init__(self, source, table, records, transaction, direction='next'):
        self.source = source
        self.direction = validate_direction(direction)
        self.request = CursorRequest(source, transaction, self)
        self._table = table
        self._records = records
        self._transaction = transaction
        self._reverse = direction.startswith('prev')
        self._unique = direction.endswith('unique')
        self._range = None
        self._lower = self._upper = None
        self._position = None
        self._pkey_enc = None
        self._got_value = False

    def _clone_out(self, value):
        if self._transaction.options.clone_values:
            return clone_value(value)
        return value

    def _result(self):
        return None if self.exhausted else self

    def _find(self, lower=None, upper=None):
        table = self._table
        lower = tighter_lower(self._lower, lower)
        upper = tighter_upper(self._upper, upper)
        position = self._position
        if position is not None:
            if self._reverse:
                bound = (table.key_upper(table.key_enc_of(position), True)
                         if self._unique
                         else (position, True))
                upper = tighter_upper(upper, bound)
            else:
                bound = (table.key_lower(table.key_enc_of(position), True)
                         if self._unique
                         else (position, True))
                lower = tighter_lower(lower, bound)

        found = table.first(lower, upper, self._reverse)
        if found is not None and self._reverse and self._unique:
            # Surface the first entry of the key, not the last.
            key_enc = table.key_enc_of(found[0])
            found = table.first(
                tighter_lower(lower, table.key_lower(key_enc, False)),
                upper)
        return found

    def _move_to(self, found):
        if found is None:
            self._position = self._pkey_enc = None
            self.key = self.primary_key = None
            self.exhausted = True
            self._moved_to(None)
            return
        position, item = found
        self.key, self.primary_key, self._pkey_enc = self._table.entry(position, item)
        self._position = position
        self._moved_to(self._pkey_enc)

    def _moved_to(self, pkey_enc):
        pass

    def _open(self, query):
        self._range = to_range(query)
        self._lower, self._upper = self._table.range_bounds(self._range)
        self._move_to(self._find())
        return self._result()

    def _check_can_move(self):
        self._transaction._check_active()
        if self.exhausted or not self._got_value:
            raise InvalidStateError('The cursor is exhausted or still moving')

    def _iterate(self, operation):
        self._got_value = False
        self.request.ready_state = 'pending'
        self._transaction._execute(self.source, operation, (), self.request)

    def advance(self, count):
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            raise TypeError('count must be a positive integer, not %r' % (count,))
        self._check_can_move()

        def advance():
            for _ in range(count):
                self._move_to(self._find())
                if self.exhausted:
                    break
            return self._result()
        self._iterate(advance)

    def continue_(self, key=None):
        self._check_can_move()
        table = self._table
        lower = upper = None
        if key is not None:
            key_enc = encode_key(key)
            current = table.key_enc_of(self._position)
            if self._reverse:
                if key_enc >= current:
                    raise DataError('The key is not before the current key')
                upper = table.key_upper(key_enc, False)
            else:
                if key_enc <= current:
                    raise DataError('The key is not after the current key')
                lower = table.key_lower(key_enc, False)

        def continue_():
            self._move_to(self._find(lower, upper))
            return self._result()
        self._iterate(continue_)

    def continue_primary_key(self, key, primary_key):
        self._check_can_move()
        if self._table is self._records or self._unique:
            raise InvalidAccessError(
                'continue_primary_key requires an index cursor with direction next or prev')
        target = (encode_key(key), encode_key(primary_key))
        if self._reverse:
            if target >= self._position:
                raise DataError('The key is not before the current position')
            lower, upper = None, (target, False)
        else:
            if target <= self._position:
                raise DataError('The key is not after the current position')
            lower, upper = (target, False), None

        def continue_primary_key():
            self._move_to(self._find(lower, upper))
            return self._result()
        self._iterate(continue_primary_key)

    def _check_can_write(self):
        transaction = self._transaction
        transaction._check_active()
        if transaction.mode == 'readonly':
            raise ReadOnlyError('The transaction is read-only')
        if not self._with_value or self.exhausted or not self._got_value:
            raise InvalidStateError('The cursor has no current record to change')

    def update(self, value):
        """
        Replace the record under the cursor with *value*.

        The cursor does not move, and its ``value`` is not changed.
        """
        self._check_can_write()
        records = self._records
        transaction = self._transaction
        if transaction.options.clone_values:
            value = clone_value(value)
        key_path = records.schema.key_path
        explicit_key = None
        if key_path is None:
            explicit_key = self.primary_key
        else:
            found = evaluate_key_path(value, key_path)
            if (found is MISSING
                    or not is_valid_key(found)
                    or encode_key(found) != self._pkey_enc):
                raise DataError('The updated value must keep the primary key %r' % (
                    self.primary_key,))
        transaction._will_write(records)
        return transaction._execute(self, records.store, (value, explicit_key, True))

    def delete(self):
        """
        Delete the record under the cursor. The cursor does not move.
        """
        self._check_can_write()
        records = self._records
        pkey_enc = self._pkey_enc
        self._transaction._will_write(records)

        def delete():
            if pkey_enc in records:
                records.delete_positions((pkey_enc,))
        return self._transaction._execute(self, delete)

    def __repr__(self):
        return '<%s %s key=%r primary_key=%r%s>' % (
            type(self).__name__,
            self.direction,
            self.key,
            self.primary_key,
            ' exhausted' if self.exhausted else '',
        )


class CursorWithValue(Cursor):
    """
    A cursor that also yields the value of each record.
    """

    _with_value = True

    value = None

    def _moved_to(self, pkey_enc):
        if pkey_enc is None:
            self.value = None
        else:
            self.value = self._clone_out(self._records.value_at(pkey_enc))
