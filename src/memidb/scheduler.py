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
The completion scheduler.

Every storage operation applies its effects immediately, but its
outcome is announced from a task queued here. Tasks run strictly in
the order they were queued, one per turn, and never from inside the
call that queued them; that's what gives requests their ordering
guarantees.
"""

from collections import deque

from zope.interface import implementer

from .interfaces import IScheduler
from .interfaces import SchedulerError
from .options import Options

logger = __import__('logging').getLogger(__name__)


@implementer(IScheduler)
class Scheduler(object):

    def __init__(self, options=None):
        options = options or Options()
        self.max_turns = options.max_turns
        self.raise_handler_errors = options.raise_handler_errors
        self._queue = deque()
        self._running = False
        self._handler_errors = []
        #: The number of turns run so far.
        self.turns = 0

    @property
    def pending(self):
        return len(self._queue)

    def call_soon(self, func, *args):
        self._queue.append((func, args))

    def report_handler_error(self, exc):
        self._handler_errors.append(exc)

    def run_once(self):
        if self._running:
            raise SchedulerError('The scheduler is already running')
        if not self._queue:
            return False
        func, args = self._queue.popleft()
        self._running = True
        try:
            self.turns += 1
            func(*args)
        finally:
            self._running = False
        return True

    def run_until_idle(self):
        """
        Run every queued task, including those queued along the way.

        If event handlers raised exceptions, the first of them is raised
        once the queue is empty (unless disabled in the options).

        :return: The number of turns run.
        """
        turns = 0
        while self._queue:
            if turns >= self.max_turns:
                raise SchedulerError(
                    'Still busy after %d turns; is a handler re-arming itself?' % (turns,))
            self.run_once()
            turns += 1

        errors, self._handler_errors = self._handler_errors, []
        if errors and self.raise_handler_errors:
            if len(errors) > 1:
                logger.warning("%d event handlers raised; re-raising the first", len(errors))
            raise errors[0]
        return turns

    def clear(self):
        """
        Discard all queued tasks and recorded handler errors.
        """
        self._queue.clear()
        self._handler_errors = []

    def __repr__(self):
        return '<%s pending=%d turns=%d>' % (type(self).__name__, len(self._queue), self.turns)
