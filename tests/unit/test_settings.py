"""
Unit tests for settings

Settings pattern:
- One instance per name per store
- fetch(merge=True) merges server keys over local ones, merge=False replaces
- changed() marks dirty, save() PUTs {etag, data}
- Data source failures leave the settings in Error for good
"""

import pytest

from featherbone.core.errors import ConfigurationError, SaveError
from featherbone.core.settings import Settings, SettingsState, SettingsStore
from tests.fixtures import DeferredDataSource


class TestStore:
    """Test the singleton cache"""

    def test_same_instance_per_name(self):
        store = SettingsStore(DeferredDataSource())

        first = store.get('catalog')
        second = store.get({'name': 'catalog', 'description': 'Feathers'})

        assert first is second
        assert store.names() == ['catalog']

    def test_missing_name(self):
        store = SettingsStore(DeferredDataSource())

        with pytest.raises(ConfigurationError):
            store.get({'description': 'no name'})

        with pytest.raises(ConfigurationError):
            store.get(None)

    def test_logger_factory(self):
        names = []
        store = SettingsStore(DeferredDataSource(), logger_factory=lambda name: names.append(name))

        store.get('theme')
        store.get('theme')

        assert names == ['theme']


class TestFetch:
    """Test fetching with and without merge"""

    def setup_method(self):
        self.ds = DeferredDataSource()
        self.settings = Settings('prefs', self.ds)
        self.settings.data = {'a': 1, 'b': 2}

    def test_fetch_request(self):
        self.settings.fetch()

        assert self.settings.state.current is SettingsState.FETCHING
        assert (self.ds.last.method, self.ds.last.path) == ('GET', '/settings/prefs')

    def test_merge(self):
        deferred = self.settings.fetch(merge=True)
        self.ds.resolve({'etag': 'e1', 'data': {'b': 3, 'c': 4}})

        assert self.settings.data == {'a': 1, 'b': 3, 'c': 4}
        assert deferred.result() == {'a': 1, 'b': 3, 'c': 4}
        assert self.settings.etag == 'e1'
        assert self.settings.state.current is SettingsState.CLEAN

    def test_replace(self):
        self.settings.fetch(merge=False)
        self.ds.resolve({'etag': 'e1', 'data': {'b': 3, 'c': 4}})

        assert self.settings.data == {'b': 3, 'c': 4}

    def test_missing_settings(self):
        self.settings.fetch()
        self.ds.resolve(None)

        assert self.settings.data == {}
        assert self.settings.etag is None

    def test_fetch_while_busy(self):
        self.settings.fetch()
        assert self.settings.fetch() is None


class TestSave:
    """Test dirtiness and saving"""

    def setup_method(self):
        self.ds = DeferredDataSource()
        self.settings = Settings('prefs', self.ds)
        self.settings.fetch()
        self.ds.resolve({'etag': 'e1', 'data': {'theme': 'light'}})

    def test_clean_save_is_ignored(self):
        assert self.settings.save() is None

    def test_set_marks_dirty(self):
        self.settings.set('theme', 'dark')

        assert self.settings.state.current is SettingsState.DIRTY
        assert self.settings.get('theme') == 'dark'

    def test_changed_marks_dirty(self):
        self.settings.data['theme'] = 'dark'
        self.settings.changed()

        assert self.settings.state.current is SettingsState.DIRTY

    def test_save_puts_etag_and_data(self):
        self.settings.set('theme', 'dark')

        deferred = self.settings.save()

        assert self.settings.state.current is SettingsState.SAVING
        assert self.ds.last.method == 'PUT'
        assert self.ds.last.path == '/settings/prefs'
        assert self.ds.last.body == {'etag': 'e1', 'data': {'theme': 'dark'}}

        self.ds.resolve({'etag': 'e2'})

        assert deferred.result() == {'theme': 'dark'}
        assert self.settings.etag == 'e2'
        assert self.settings.state.current is SettingsState.CLEAN

    def test_stale_etag_is_terminal(self):
        self.settings.set('theme', 'dark')

        deferred = self.settings.save()
        self.ds.reject(SaveError('Settings for "prefs" changed by another user. Save failed.', 409))

        assert isinstance(deferred.exception(), SaveError)
        assert self.settings.state.current is SettingsState.ERROR
        assert self.settings.last_error() is deferred.exception()
        assert self.settings.fetch() is None
        assert self.settings.changed() is False

    def test_no_data_source(self):
        settings = Settings('offline')
        settings.set('x', 1)

        with pytest.raises(ConfigurationError):
            settings.save()


class TestUnsettledEdits:
    """Test edits and payloads that arrive at the wrong time"""

    def setup_method(self):
        self.ds = DeferredDataSource()
        self.settings = Settings('prefs', self.ds)

    def test_set_while_fetching_is_ignored(self):
        self.settings.fetch()

        assert self.settings.set('theme', 'dark') is False
        assert self.settings.get('theme') is None

        self.ds.resolve({'etag': 'e1', 'data': {'theme': 'light'}})

        assert self.settings.get('theme') == 'light'
        assert self.settings.state.current is SettingsState.CLEAN

    def test_set_while_dirty(self):
        assert self.settings.set('theme', 'dark') is True
        assert self.settings.set('size', 'large') is True

        assert self.settings.data == {'theme': 'dark', 'size': 'large'}
        assert self.settings.state.current is SettingsState.DIRTY

    def test_bad_payload_rejects(self):
        """Should settle the deferred when the response can't be read"""
        deferred = self.settings.fetch()
        self.ds.resolve('not a settings object')

        assert deferred.done()
        assert isinstance(deferred.exception(), AttributeError)
        assert self.settings.last_error() is deferred.exception()
        assert self.settings.state.current is SettingsState.ERROR
