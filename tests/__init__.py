"""
Test suite for the Featherbone object layer.

Test structure:
- unit/ - Unit tests (fast, isolated)
- fixtures/ - Shared feathers and a hand-settled data source

Run tests:
    pytest                    # All tests
    pytest tests/unit         # Unit tests only
    pytest -k "model"         # Tests matching name

Philosophy:
    State machines are the contract. Every transition a model, list or
    settings object can take has a test, and so does every event it must
    ignore.
"""
