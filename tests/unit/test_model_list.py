"""
Unit tests for model lists

List pattern:
- fetch() merges rows by id: known ids are replaced in place
- Fetched models are always Clean
- The id index always matches list positions
- The list is Dirty while any model needs saving; save() saves them
"""

import pytest

from featherbone.core.catalog import Catalog
from featherbone.core.errors import ConfigurationError, FetchError, SaveError
from featherbone.core.model import Model, ModelState
from featherbone.core.model_list import ListState, ModelList
from tests.fixtures import DeferredDataSource, feathers


ROWS = [
    {'id': 'c1', 'firstName': 'Ann', 'lastName': 'Lee'},
    {'id': 'c2', 'firstName': 'Bo', 'lastName': 'Berg'},
    {'id': 'c3', 'firstName': 'Cy', 'lastName': 'Cole'},
]


class TestFetch:
    """Test fetching and merging"""

    def setup_method(self):
        self.catalog = Catalog(feathers())
        self.ds = DeferredDataSource()
        self.contacts = ModelList('Contact', catalog=self.catalog, data_source=self.ds)

    def test_fetch_requests_plural_path(self):
        self.contacts.fetch({'lastName': 'Lee'})

        assert self.contacts.state.current is ListState.FETCHING
        assert self.ds.last.method == 'GET'
        assert self.ds.last.path == '/data/contacts'
        assert self.ds.last.params == {'lastName': 'Lee'}

    def test_fetched_models_are_clean(self):
        deferred = self.contacts.fetch()
        self.ds.resolve(ROWS)

        assert deferred.result() is self.contacts
        assert len(self.contacts) == 3
        assert all(m.state.current is ModelState.CLEAN for m in self.contacts)
        assert self.contacts.state.current is ListState.CLEAN

    def test_merge_replaces_in_place(self):
        """Should replace a known id at the same index, not duplicate it"""
        self.contacts.fetch()
        self.ds.resolve(ROWS)

        self.contacts.fetch()
        self.ds.resolve([
            {'id': 'c2', 'firstName': 'Bob', 'lastName': 'Berg'},
            {'id': 'c4', 'firstName': 'Di', 'lastName': 'Dahl'},
        ])

        assert [m.id() for m in self.contacts] == ['c1', 'c2', 'c3', 'c4']
        assert self.contacts[1]['firstName'] == 'Bob'
        assert self.contacts.index_of('c2') == 1
        assert self.contacts.index_of('c4') == 3

    def test_fetch_without_merge_replaces_all(self):
        self.contacts.fetch()
        self.ds.resolve(ROWS)

        self.contacts.fetch(merge=False)
        self.ds.resolve([{'id': 'c9', 'lastName': 'Nine'}])

        assert [m.id() for m in self.contacts] == ['c9']
        assert self.contacts.index_of('c1') is None

    def test_fetch_while_busy_is_ignored(self):
        self.contacts.fetch()
        assert self.contacts.fetch() is None

    def test_fetch_error(self):
        deferred = self.contacts.fetch()
        error = FetchError('down')
        self.ds.reject(error)

        assert deferred.exception() is error
        assert self.contacts.last_error() is error
        assert self.contacts.state.current is ListState.CLEAN

    def test_uses_registered_factory(self):
        class Special(Model):
            pass

        self.catalog.register_model('Contact', Special)
        contacts = ModelList('Contact', catalog=self.catalog, data_source=self.ds)

        contacts.fetch()
        self.ds.resolve(ROWS[:1])

        assert isinstance(contacts[0], Special)

    def test_no_data_source(self):
        contacts = ModelList('Contact', catalog=self.catalog)

        with pytest.raises(ConfigurationError):
            contacts.fetch()


    def test_bad_row_rejects(self):
        """Should settle the deferred when a row can't become a model"""
        deferred = self.contacts.fetch()
        self.ds.resolve([{'id': 'c1', 'phones': 'oops'}])

        assert deferred.done()
        assert deferred.exception() is not None
        assert self.contacts.last_error() is deferred.exception()
        assert self.contacts.state.current is not ListState.FETCHING
        assert self.contacts.fetch() is not None


class TestAddRemove:
    """Test add/remove and the id index"""

    def setup_method(self):
        self.catalog = Catalog(feathers())
        self.ds = DeferredDataSource()
        self.contacts = ModelList('Contact', catalog=self.catalog, data_source=self.ds)
        self.contacts.fetch()
        self.ds.resolve(ROWS)

    def model(self, data):
        return Model(data, self.catalog.get_feather('Contact'),
                     catalog=self.catalog, data_source=self.ds)

    def test_remove_renumbers_index(self):
        removed = self.contacts.remove(self.contacts[0])

        assert removed.id() == 'c1'
        assert [m.id() for m in self.contacts] == ['c2', 'c3']
        assert self.contacts.index_of('c1') is None
        assert self.contacts.index_of('c2') == 0
        assert self.contacts.index_of('c3') == 1

    def test_remove_unknown_is_noop(self):
        stranger = self.model({'id': 'zz', 'lastName': 'X'})

        assert self.contacts.remove(stranger) is None
        assert len(self.contacts) == 3

    def test_add_known_id_replaces(self):
        replacement = self.model({'id': 'c2', 'lastName': 'New'})

        self.contacts.add(replacement)

        assert len(self.contacts) == 3
        assert self.contacts[1] is replacement

    def test_add_new_model_dirties_list(self):
        self.contacts.add(self.model({'lastName': 'Fresh'}))

        assert len(self.contacts) == 4
        assert self.contacts.state.current is ListState.DIRTY

    def test_model_change_dirties_list(self):
        self.contacts[0]['firstName'] = 'Changed'

        assert self.contacts.state.current is ListState.DIRTY

        self.contacts[0].undo()

        assert self.contacts.state.current is ListState.CLEAN

    def test_removed_model_no_longer_tracked(self):
        model = self.contacts.remove(self.contacts[0])

        model['firstName'] = 'Changed'

        assert self.contacts.state.current is ListState.CLEAN

    def test_sequence_protocol(self):
        assert len(self.contacts) == 3
        assert [m['firstName'] for m in self.contacts] == ['Ann', 'Bo', 'Cy']
        assert self.contacts[-1].id() == 'c3'
        assert self.contacts.to_json()[0]['lastName'] == 'Lee'


class TestSave:
    """Test saving dirty models"""

    def setup_method(self):
        self.catalog = Catalog(feathers())
        self.ds = DeferredDataSource()
        self.contacts = ModelList('Contact', catalog=self.catalog, data_source=self.ds)
        self.contacts.fetch()
        self.ds.resolve(ROWS)

    def test_save_clean_list_is_ignored(self):
        assert self.contacts.save() is None

    def test_save_sends_dirty_models(self):
        self.contacts[0]['firstName'] = 'Annie'
        self.contacts[2].delete()
        requests_before = len(self.ds.requests)

        deferred = self.contacts.save()

        assert self.contacts.state.current is ListState.SAVING
        sent = self.ds.requests[requests_before:]
        assert [(r.method, r.path) for r in sent] == [
            ('PATCH', '/data/contact/c1'),
            ('DELETE', '/data/contact/c3'),
        ]

        self.ds.resolve(None, index=-2)
        assert not deferred.done()
        self.ds.resolve(True, index=-1)

        assert deferred.result() is self.contacts
        assert [m.id() for m in self.contacts] == ['c1', 'c2']
        assert self.contacts.state.current is ListState.CLEAN

    def test_save_posts_new_models(self):
        model = Model({'lastName': 'Fresh'}, self.catalog.get_feather('Contact'),
                      catalog=self.catalog, data_source=self.ds)
        self.contacts.add(model)

        self.contacts.save()
        self.ds.resolve({'id': model.id()})

        assert self.contacts.index_of(model.id()) == 3
        assert self.contacts.state.current is ListState.CLEAN

    def test_save_failure_rejects(self):
        self.contacts[0]['firstName'] = 'Annie'

        deferred = self.contacts.save()
        self.ds.reject(SaveError('conflict', status_code=409))

        assert isinstance(deferred.exception(), SaveError)
        assert self.contacts[0].state.current is ModelState.ERROR
        assert self.contacts.state.current is ListState.CLEAN

    def test_model_save_raising_rejects(self):
        """Should leave Saving when a model refuses to save synchronously"""
        offline = Model({'lastName': 'Offline'}, self.catalog.get_feather('Contact'),
                        catalog=self.catalog)
        self.contacts.add(offline)

        deferred = self.contacts.save()

        assert isinstance(deferred.exception(), ConfigurationError)
        assert self.contacts.last_error() is deferred.exception()
        assert self.contacts.state.current is ListState.DIRTY
        assert self.contacts.fetch() is not None
