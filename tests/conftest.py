# File: tests/conftest.py
"""
Shared pytest setup: puts the project root on sys.path (so `app` and
`run_full_test` import from a checkout) and resets process-wide caches
between tests.
"""

import os
import sys

import pytest

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from atmos.api_integration import gemini_client
from atmos.cache import clear_cache


@pytest.fixture(autouse=True)
def reset_caches():
    clear_cache()
    gemini_client.clear_suggestion_cache()
    yield
    clear_cache()
    gemini_client.clear_suggestion_cache()
