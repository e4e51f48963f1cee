"""Unit tests for the Featherbone object layer.

Fast, isolated tests for individual components.
No network: HTTP is mocked, local storage lives in temporary directories.
"""
