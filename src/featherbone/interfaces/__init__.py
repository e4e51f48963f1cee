"""
Data source interfaces.

The object layer never talks to the network itself. Models, lists and
settings send requests through a data source:
- HttpDataSource: a Featherbone server over HTTP (requests)
- LocalDataSource: the same data API served in-process from TSV files

Anything with request(method, path, body=None, params=None) -> Future
can stand in.
"""

from .datasource import DEFAULT_TIMEOUT, DataSource, HttpDataSource, error_for
from .local import LocalDataSource


__all__ = [
    "DEFAULT_TIMEOUT",
    "DataSource",
    "HttpDataSource",
    "LocalDataSource",
    "error_for",
]
