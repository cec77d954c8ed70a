"""
Test suite for the gateway.

Test structure:
- unit/ - Unit tests (one component at a time)
- integration/ - Gateway + broker + modules end to end, HTTP surface
- fixtures/ - Logic modules used by the tests

Run tests:
    pytest                    # All tests
    pytest tests/unit         # Unit tests only
    pytest tests/integration  # Integration tests only
    pytest -k "upgrade"       # Tests matching name
"""
