"""
Test fixtures for the Featherbone object layer

This package contains fixtures used for testing:
- FEATHERS: a small catalog (Object, Contact, Address, Phone, Employee...)
- DeferredDataSource: a data source whose futures the test settles by hand
"""

import copy
from concurrent.futures import Future
from types import SimpleNamespace


FEATHERS = {
    'Object': {
        'description': 'Root feather',
        'properties': {
            'id': {'type': 'string', 'default': 'createId()', 'isReadOnly': True},
        },
    },
    'Contact': {
        'inherits': 'Object',
        'plural': 'Contacts',
        'properties': {
            'firstName': {'type': 'string'},
            'lastName': {'type': 'string', 'isRequired': True},
            'fullName': {'type': 'string', 'isReadOnly': True},
            'age': {'type': 'integer'},
            'address': {'type': {'relation': 'Address', 'properties': ['street', 'city']}},
            'phones': {'type': {'relation': 'Phone', 'parentOf': 'contact'}},
        },
    },
    'Address': {
        'inherits': 'Object',
        'plural': 'Addresses',
        'properties': {
            'street': {'type': 'string'},
            'city': {'type': 'string'},
            'country': {'type': 'string'},
        },
    },
    'Phone': {
        'inherits': 'Object',
        'plural': 'Phones',
        'properties': {
            'number': {'type': 'string'},
            'contact': {'type': {'relation': 'Contact', 'childOf': 'phones'}},
        },
    },
    'Employee': {
        'inherits': 'Contact',
        'plural': 'Employees',
        'properties': {
            'lastName': {'type': 'string', 'description': 'Family name'},
            'salary': {'type': 'number', 'scale': 2},
        },
    },
    'Note': {
        'inherits': 'Object',
        'plural': 'Notes',
        'properties': {
            'text': {'type': 'string'},
            'etag': {'type': 'string', 'isReadOnly': True},
        },
    },
    'RoleMembership': {
        'inherits': 'Object',
        'plural': 'RoleMemberships',
        'properties': {
            'role': {'type': 'string'},
        },
    },
}


def feathers():
    """Fresh copy of FEATHERS"""
    return copy.deepcopy(FEATHERS)


class DeferredDataSource:
    """
    Records requests and returns pending futures.

    Tests settle them with resolve()/reject(), so Busy states can be
    observed in between.
    """

    def __init__(self):
        self.requests = []

    def request(self, method, path, body=None, params=None):
        future = Future()
        self.requests.append(SimpleNamespace(
            method=method, path=path, body=body, params=params, future=future,
        ))
        return future

    @property
    def last(self):
        return self.requests[-1]

    def resolve(self, result=None, index=-1):
        self.requests[index].future.set_result(result)

    def reject(self, error, index=-1):
        self.requests[index].future.set_exception(error)
