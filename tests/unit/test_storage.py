"""
Unit tests for TSV record storage and name helpers
"""

from featherbone.storage import TsvStore, load_json
from featherbone.utils import encode_filter, to_spinal_case


class TestTsvStore:
    """Test the key/value TSV store"""

    def test_set_get_delete(self, tmp_path):
        store = TsvStore('contact', tmp_path)

        store.set('c1', {'id': 'c1', 'tags': ['a', 'b']})

        assert 'c1' in store
        assert store.get('c1') == {'id': 'c1', 'tags': ['a', 'b']}
        assert store.delete('c1') is True
        assert store.delete('c1') is False
        assert store.get('c1', 'gone') == 'gone'

    def test_get_returns_copy(self, tmp_path):
        store = TsvStore('contact', tmp_path)
        store.set('c1', {'id': 'c1'})

        store.get('c1')['id'] = 'changed'

        assert store.get('c1') == {'id': 'c1'}

    def test_persists(self, tmp_path):
        TsvStore('contact', tmp_path).set('c1', {'text': 'tab\tand\nnewline'})

        assert TsvStore('contact', tmp_path).get_all() == {'c1': {'text': 'tab\tand\nnewline'}}

    def test_load_json(self, tmp_path):
        path = tmp_path / 'feathers.json'
        path.write_text('{"Object": {}}')

        assert load_json(path) == {'Object': {}}
        assert load_json(tmp_path / 'missing.json') is None


class TestNames:

    def test_to_spinal_case(self):
        assert to_spinal_case('RoleMembership') == 'role-membership'
        assert to_spinal_case('Contacts') == 'contacts'

    def test_encode_filter(self):
        assert encode_filter({'lastName': 'Lee'}) == 'lastName=Lee'
        assert encode_filter({'age': {'gt': 30}}) == 'age%5Bgt%5D=30'
