##############################################################################
#
# Copyright (c) 2008 Zope Foundation and Contributors.
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

from memidb._util import get_boolean_from_environ
from memidb._util import get_positive_integer_from_environ


class Options(object):
    """Options for configuring and tuning a :class:`.Registry`.

    These parameters can be provided as keyword options in the
    :class:`.Registry` constructor through an ``Options`` instance.
    For example::

        registry = Registry(Options(max_turns=500, clone_values=False))

    The defaults of some options can be changed through the
    environment; see the individual attributes.
    """

    #: The most scheduler turns :meth:`.Scheduler.run_until_idle` will
    #: run before deciding a handler is re-arming itself forever.
    #: ``MEMIDB_MAX_TURNS`` in the environment.
    max_turns = get_positive_integer_from_environ('MEMIDB_MAX_TURNS', 100000)

    #: Structurally clone values on their way into and out of a store.
    #: Turning this off makes the stored value the very object the
    #: caller passed, which is faster but lets callers mutate stored
    #: state behind the engine's back (indexes will not notice).
    #: ``MEMIDB_CLONE_VALUES`` in the environment.
    clone_values = get_boolean_from_environ('MEMIDB_CLONE_VALUES', True)

    #: Exceptions raised by event handlers abort the owning transaction.
    #: If this is true, the first one is also raised out of
    #: :meth:`.Scheduler.run_until_idle` once the queue drains.
    #: ``MEMIDB_RAISE_HANDLER_ERRORS`` in the environment.
    raise_handler_errors = get_boolean_from_environ('MEMIDB_RAISE_HANDLER_ERRORS', True)

    #: The version requested by ``open(name)`` for a database
    #: that doesn't exist yet.
    default_version = 1

    def __init__(self, **kwoptions):
        for key, value in kwoptions.items():
            if not hasattr(self, key):
                raise TypeError("Unknown parameter: %s (Known: %s)" % (
                    key,
                    self.valid_option_names()
                ))
            setattr(self, key, value)

    @classmethod
    def valid_option_names(cls):
        return sorted(
            x
            for x in vars(cls)
            if not callable(getattr(cls, x)) and not x.startswith('_')
        )

    def __repr__(self):
        opts = []
        for k, v in sorted(self.__dict__.items()):
            opt = '%s=%r' % (k, v)
            opts.append(opt)
        opts = ', '.join(opts)
        return 'memidb.options.Options(%s)' % (opts,)

    def __eq__(self, other):
        if not isinstance(other, Options):
            return NotImplemented
        return all(getattr(self, key) == getattr(other, key)
                   for key in self.valid_option_names())

    def __hash__(self):
        # Equal objects must have equal hashes; we don't expect to
        # hash these, so a constant is good enough.
        return 42

    def copy(self, **kw):
        """
        Produce a copy of these options, with keyword arguments overriding.
        """
        options = dict(self.__dict__)
        options.update(kw)
        return self.__class__(**options)
