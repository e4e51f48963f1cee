"""
Role-aware models

RoleMembership and FeatherAuthorization both offer the catalog's role
names as options through a calculated `roleNames` property. Roles are
whatever the application registered under catalog.register('data', 'roles'):
role models or plain dicts with `name` and `objectType`.
"""

from typing import Any, Dict, List

from ..core.model import Model


def role_options(catalog, exclude_types=()) -> List[Dict[str, str]]:
    """
    Sorted role names as select options, led by a blank option.

        >>> _ = catalog.register('data', 'roles', [{'name': 'staff'}, {'name': 'admin'}])
        >>> role_options(catalog)
        [{'value': '', 'label': ''}, {'value': 'admin', 'label': 'admin'}, {'value': 'staff', 'label': 'staff'}]
    """
    roles = (catalog.lookup('data', 'roles') if catalog is not None else None) or []

    names = sorted(
        _field(role, 'name') for role in roles
        if _field(role, 'objectType') not in exclude_types
    )

    options = [{'value': '', 'label': ''}]
    options.extend({'value': name, 'label': name} for name in names)
    return options


def _field(role: Any, key: str) -> Any:
    if getattr(role, 'is_model', False):
        return role[key] if key in role else None
    return role.get(key)


class RoleMembership(Model):
    """Membership of a user account in a role"""

    def __init__(self, data=None, feather=None, **kwargs):
        catalog = kwargs.get('catalog')
        if feather is None and catalog is not None:
            feather = catalog.get_feather('RoleMembership')

        super().__init__(data, feather, **kwargs)

        # User accounts are roles too; they can't be members of each other
        self.add_calculated(
            'roleNames',
            lambda: role_options(self.catalog, exclude_types=('UserAccount',)),
            type='array',
        )


class FeatherAuthorization(Model):
    """Grants a role access to a feather"""

    def __init__(self, data=None, feather=None, **kwargs):
        catalog = kwargs.get('catalog')
        if feather is None and catalog is not None:
            feather = catalog.get_feather('FeatherAuthorization')

        super().__init__(data, feather, **kwargs)

        self.add_calculated('roleNames', lambda: role_options(self.catalog), type='array')
