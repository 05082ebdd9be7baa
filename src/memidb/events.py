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
Events and event targets.

Handlers are plain callables taking the event. Exceptions they raise
are logged and collected on :attr:`Event.handler_errors` rather than
propagated; whoever dispatched the event decides what they mean.
"""

from zope.interface import implementer

from .interfaces import IEventTarget

logger = __import__('logging').getLogger(__name__)


class Event(object):

    target = None
    current_target = None
    default_prevented = False

    def __init__(self, type, bubbles=False, cancelable=False): # pylint:disable=redefined-builtin
        self.type = type
        self.bubbles = bubbles
        self.cancelable = cancelable
        self.propagation_stopped = False
        self.handler_errors = []

    def prevent_default(self):
        if self.cancelable:
            self.default_prevented = True

    def stop_propagation(self):
        self.propagation_stopped = True

    def __repr__(self):
        return '<%s %r target=%r>' % (type(self).__name__, self.type, self.target)


class VersionChangeEvent(Event):

    def __init__(self, type, old_version, new_version): # pylint:disable=redefined-builtin
        super(VersionChangeEvent, self).__init__(type)
        self.old_version = old_version
        self.new_version = new_version


@implementer(IEventTarget)
class EventTarget(object):
    """
    Mixin for objects that events are dispatched to.
    """

    _listeners = None

    def get_parent_target(self):
        """
        Return the next object a bubbling event visits, or None.
        """
        return None

    def add_event_listener(self, type, listener): # pylint:disable=redefined-builtin
        if self._listeners is None:
            self._listeners = {}
        listeners = self._listeners.setdefault(type, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove_event_listener(self, type, listener): # pylint:disable=redefined-builtin
        listeners = (self._listeners or {}).get(type, ())
        if listener in listeners:
            listeners.remove(listener)

    def _handlers_for(self, type): # pylint:disable=redefined-builtin
        handlers = []
        attr_handler = getattr(self, 'on' + type, None)
        if attr_handler is not None:
            handlers.append(attr_handler)
        if self._listeners:
            handlers.extend(self._listeners.get(type, ()))
        return handlers

    def dispatch_event(self, event):
        event.target = self
        path = [self]
        if event.bubbles:
            parent = self.get_parent_target()
            while parent is not None:
                path.append(parent)
                parent = parent.get_parent_target()

        for current in path:
            event.current_target = current
            for handler in current._handlers_for(event.type):
                try:
                    handler(event)
                except Exception as e: # pylint:disable=broad-except
                    logger.exception("Handler %r for %r raised", handler, event)
                    event.handler_errors.append(e)
            if event.propagation_stopped:
                break
        event.current_target = None
        return not event.default_prevented
