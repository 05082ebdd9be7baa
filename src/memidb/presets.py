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
Ready-made schemas for :meth:`memidb.registry.Registry.seed_database`.

Each method returns a fresh mapping, so callers may add ``data`` to
the stores before seeding::

    schema = DatabasePresets.users_database()
    schema['stores'][0]['data'] = [{'value': {'email': 'a@example.com'}}]
    registry.seed_database(schema)
"""


def _index(name, key_path=None, unique=False, multi_entry=False):
    return {
        'name': name,
        'key_path': key_path or name,
        'unique': unique,
        'multi_entry': multi_entry,
    }


class DatabasePresets(object):

    @staticmethod
    def key_value_store(name='kvStore'):
        """A single ``data`` store keyed by ``key``."""
        return {
            'name': name,
            'version': 1,
            'stores': [
                {'name': 'data', 'key_path': 'key'},
            ],
        }

    @staticmethod
    def users_database(name='usersDb'):
        """Users with unique email and username, and their sessions."""
        return {
            'name': name,
            'version': 1,
            'stores': [
                {
                    'name': 'users',
                    'key_path': 'id',
                    'auto_increment': True,
                    'indexes': [
                        _index('email', unique=True),
                        _index('username', unique=True),
                    ],
                },
                {
                    'name': 'sessions',
                    'key_path': 'id',
                    'auto_increment': True,
                    'indexes': [
                        _index('userId'),
                        _index('expiresAt'),
                    ],
                },
            ],
        }

    @staticmethod
    def todo_database(name='todoDb'):
        return {
            'name': name,
            'version': 1,
            'stores': [
                {
                    'name': 'todos',
                    'key_path': 'id',
                    'auto_increment': True,
                    'indexes': [
                        _index('completed'),
                        _index('createdAt'),
                        _index('priority'),
                    ],
                },
                {
                    'name': 'categories',
                    'key_path': 'id',
                    'auto_increment': True,
                },
            ],
        }

    @staticmethod
    def cache_database(name='cacheDb'):
        """An offline cache of requests and responses keyed by URL."""
        return {
            'name': name,
            'version': 1,
            'stores': [
                {
                    'name': 'requests',
                    'key_path': 'url',
                    'indexes': [
                        _index('timestamp'),
                        _index('method'),
                    ],
                },
                {
                    'name': 'responses',
                    'key_path': 'url',
                    'indexes': [
                        _index('expiresAt'),
                    ],
                },
            ],
        }
