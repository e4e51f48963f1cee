"""
Unit tests for built-in models
"""

from featherbone.core.catalog import Catalog
from featherbone.models import Contact, FeatherAuthorization, RoleMembership, register, role_options
from tests.fixtures import feathers


ROLES = [
    {'name': 'staff', 'objectType': 'Role'},
    {'name': 'admin', 'objectType': 'Role'},
    {'name': 'ann', 'objectType': 'UserAccount'},
]


class TestRoleNames:
    """Test the calculated roleNames property"""

    def setup_method(self):
        self.catalog = Catalog(feathers())
        self.catalog.register('data', 'roles', ROLES)

    def test_role_membership_excludes_user_accounts(self):
        membership = RoleMembership(catalog=self.catalog)

        assert membership['roleNames'] == [
            {'value': '', 'label': ''},
            {'value': 'admin', 'label': 'admin'},
            {'value': 'staff', 'label': 'staff'},
        ]

    def test_feather_authorization_lists_all_roles(self):
        auth = FeatherAuthorization({}, {'name': 'FeatherAuthorization'}, catalog=self.catalog)

        values = [option['value'] for option in auth['roleNames']]
        assert values == ['', 'admin', 'ann', 'staff']

    def test_recomputed_when_roles_change(self):
        membership = RoleMembership(catalog=self.catalog)

        self.catalog.register('data', 'roles', [{'name': 'guest', 'objectType': 'Role'}])

        assert [o['value'] for o in membership['roleNames']] == ['', 'guest']

    def test_calculated_not_serialized(self):
        membership = RoleMembership({'role': 'staff'}, catalog=self.catalog)

        assert 'roleNames' not in membership.to_json()
        assert membership.to_json()['role'] == 'staff'

    def test_no_roles_registered(self):
        assert role_options(Catalog()) == [{'value': '', 'label': ''}]


class TestContact:
    """Test the Contact model"""

    def setup_method(self):
        self.catalog = Catalog(feathers())

    def test_full_name_follows_names(self):
        contact = Contact(catalog=self.catalog)

        contact['lastName'] = 'Lee'
        assert contact['fullName'] == 'Lee'

        contact['firstName'] = 'Ann'
        assert contact['fullName'] == 'Ann Lee'
        assert contact.natural_key() == 'Ann Lee'

    def test_full_name_without_last_name(self):
        contact = Contact(catalog=self.catalog)

        contact['firstName'] = 'Ann'
        contact['lastName'] = None

        assert contact['fullName'] == 'Ann'

        contact['firstName'] = ''

        assert contact['fullName'] == ''


class TestRegister:

    def test_register_installs_factories(self):
        catalog = Catalog(feathers())

        register(catalog)

        assert catalog.model_factory('Contact') is Contact
        assert catalog.model_factory('RoleMembership') is RoleMembership
