"""
Test fixtures for the gateway

- modules/ - logic modules used by the tests
- examples/modules/ (repo root) - the sample counter modules
"""

from pathlib import Path

FIXTURES_DIR = Path(__file__).parent
MODULES_DIR = FIXTURES_DIR / 'modules'
EXAMPLES_DIR = FIXTURES_DIR.parent.parent / 'examples' / 'modules'

COUNTER_V1 = EXAMPLES_DIR / 'counter_v1.py'
COUNTER_V2 = EXAMPLES_DIR / 'counter_v2.py'
