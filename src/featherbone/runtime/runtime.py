"""
Runtime

Wires the object layer together for an application.

The runtime:
- Loads configuration (featherbone.tsv / environment)
- Builds the data source (HTTP or local files)
- Owns the Catalog and the SettingsStore
- Hands out one SelfLogger per object (cached)
- Creates models and lists through registered factories
"""

from pathlib import Path
from typing import Any, Dict, Optional

from ..config import FeatherboneConfig, get_config
from ..core.catalog import Catalog
from ..core.model import Model
from ..core.model_list import ModelList
from ..core.self_logger import SelfLogger
from ..core.settings import Settings, SettingsStore
from ..interfaces import HttpDataSource, LocalDataSource
from ..models import register as register_models
from ..storage import load_json


class Runtime:
    """
    Runtime for Featherbone objects.

    Example:
        >>> runtime = Runtime('/tmp/fb', data_source=LocalDataSource('/tmp/fb'))
        >>> runtime.load_catalog('feathers.json')
        >>> contact = runtime.model('Contact', {'firstName': 'Ada'})
        >>> contact.save().result()
    """

    def __init__(
        self,
        base_dir: Optional[Path | str] = None,
        config: Optional[FeatherboneConfig] = None,
        data_source=None,
        catalog: Optional[Catalog] = None,
    ):
        """
        Initialize runtime.

        Args:
            base_dir: Base directory for logs and local data
                      (default: config base_dir)
            config: Configuration (default: get_config())
            data_source: Data source (default: built from config)
            catalog: Catalog (default: a new, empty one)
        """
        self.config = config or get_config()
        self.base_dir = Path(base_dir) if base_dir is not None else self.config.base_dir
        self.base_dir.mkdir(parents=True, exist_ok=True)

        # Logger cache
        self._loggers: Dict[str, SelfLogger] = {}

        self.catalog = catalog or Catalog(logger=self.logger('catalog'))
        register_models(self.catalog)

        self.data_source = data_source or self._build_data_source()
        self.settings_store = SettingsStore(
            self.data_source,
            logger_factory=lambda name: self.logger(f'settings.{name}'),
        )

    def logger(self, object_id: str) -> SelfLogger:
        """Logger for an object, created on first use"""
        if object_id not in self._loggers:
            self._loggers[object_id] = SelfLogger(
                object_id,
                self.base_dir,
                min_level=self.config.log_level,
            )
        return self._loggers[object_id]

    def load_catalog(self, path: Optional[Path | str] = None) -> Dict[str, Any]:
        """
        Load feathers from a JSON file, or from the data source.

        Args:
            path: JSON file mapping feather name -> definition

        Returns:
            The loaded feathers
        """
        if path is not None:
            self.catalog.load(load_json(path) or {})
        else:
            self.catalog.fetch(self.data_source, timeout=self.config.timeout)
        return self.catalog.data()

    def model(self, name: str, data: Optional[Dict[str, Any]] = None) -> Model:
        """Create a model for a feather via its registered factory"""
        feather = self.catalog.get_feather(name)
        factory = self.catalog.model_factory(name) or Model

        return factory(
            data,
            feather,
            catalog=self.catalog,
            data_source=self.data_source,
            logger=self.logger(f'model.{name}'),
        )

    def list(self, name: str, filter: Optional[Dict[str, Any]] = None, fetch: bool = True) -> ModelList:
        """
        Create a list for a feather.

        Args:
            name: Feather name
            filter: Criteria for the initial fetch
            fetch: Start fetching right away (default True)
        """
        models = ModelList(
            name,
            catalog=self.catalog,
            data_source=self.data_source,
            logger=self.logger(f'list.{name}'),
        )
        if fetch:
            models.fetch(filter)
        return models

    def settings(self, name: str) -> Settings:
        return self.settings_store.get(name)

    def _build_data_source(self):
        logger = self.logger('datasource')

        if self.config.data_source == 'local':
            return LocalDataSource(self.base_dir, catalog=self.catalog, logger=logger)

        return HttpDataSource(self.config.url, timeout=self.config.timeout, logger=logger)
