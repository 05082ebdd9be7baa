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
Requests: the handles returned by every storage operation.
"""

from zope.interface import implementer

from ._util import TRACE
from .events import Event
from .events import EventTarget
from .events import VersionChangeEvent
from .interfaces import IRequest

logger = __import__('logging').getLogger(__name__)


@implementer(IRequest)
class Request(EventTarget):
    """
    The outcome of one operation.

    ``result`` and ``error`` are set as soon as the operation is
    issued; ``ready_state`` becomes ``'done'`` and the ``success`` or
    ``error`` event fires when the outcome is announced in a later
    scheduler turn.
    """

    onsuccess = None
    onerror = None

    def __init__(self, source=None, transaction=None):
        self.source = source
        self.transaction = transaction
        self.result = None
        self.error = None
        self.ready_state = 'pending'

    def get_parent_target(self):
        return self.transaction

    def _set_outcome(self, result=None, error=None):
        self.result = result
        self.error = error

    def _mark_done(self):
        self.ready_state = 'done'

    def _make_event(self):
        if self.error is None:
            return Event('success')
        return Event('error', bubbles=True, cancelable=True)

    def _announce(self):
        """
        Fire ``success`` or ``error``.

        :return: The dispatched event.
        """
        self._mark_done()
        event = self._make_event()
        logger.log(TRACE, "Announcing %r", self)
        self.dispatch_event(event)
        return event

    def __repr__(self):
        return '<%s %s source=%r error=%r>' % (
            type(self).__name__, self.ready_state, self.source, self.error
        )


class OpenDBRequest(Request):
    """
    The request returned by opening or deleting a database.

    Besides ``success`` and ``error``, it receives ``upgradeneeded``
    and ``blocked`` events.
    """

    onupgradeneeded = None
    onblocked = None

    #: The old version, reported by the success event of a delete.
    old_version = None

    def _make_event(self):
        if self.error is None and self.old_version is not None:
            return VersionChangeEvent('success', self.old_version, None)
        return super(OpenDBRequest, self)._make_event()
