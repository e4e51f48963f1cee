"""
Built-in models.

Models with behaviour beyond what their feather describes:
- Contact: derived full name
- RoleMembership, FeatherAuthorization: role name options from the catalog

register(catalog) installs them as the catalog's model factories.
"""

from .contact import Contact
from .roles import FeatherAuthorization, RoleMembership, role_options


__all__ = [
    "Contact",
    "FeatherAuthorization",
    "RoleMembership",
    "register",
    "role_options",
]


BUILTIN = {
    'Contact': Contact,
    'FeatherAuthorization': FeatherAuthorization,
    'RoleMembership': RoleMembership,
}


def register(catalog) -> None:
    """Register built-in model factories on a catalog"""
    for name, factory in BUILTIN.items():
        catalog.register_model(name, factory)
