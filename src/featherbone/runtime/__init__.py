"""Runtime: configuration, data source, catalog and loggers wired together."""

from .runtime import Runtime


__all__ = ["Runtime"]
