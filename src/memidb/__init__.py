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
MemIDB: an in-memory, transactional, indexed object store that
behaves like a browser's IndexedDB.
"""

from memidb.interfaces import AbortError
from memidb.interfaces import ConstraintError
from memidb.interfaces import DataCloneError
from memidb.interfaces import DataError
from memidb.interfaces import IDBError
from memidb.interfaces import IDBErrorCode
from memidb.interfaces import InvalidAccessError
from memidb.interfaces import InvalidStateError
from memidb.interfaces import NotFoundError
from memidb.interfaces import ReadOnlyError
from memidb.interfaces import SchedulerError
from memidb.interfaces import TransactionInactiveError
from memidb.interfaces import VersionError
from memidb.keys import KeyRange
from memidb.options import Options
from memidb.presets import DatabasePresets
from memidb.registry import Registry
from memidb.scheduler import Scheduler

__all__ = [
    'Registry',
    'Scheduler',
    'Options',
    'KeyRange',
    'DatabasePresets',

    'IDBError',
    'IDBErrorCode',
    'AbortError',
    'ConstraintError',
    'DataCloneError',
    'DataError',
    'InvalidAccessError',
    'InvalidStateError',
    'NotFoundError',
    'ReadOnlyError',
    'SchedulerError',
    'TransactionInactiveError',
    'VersionError',
]
