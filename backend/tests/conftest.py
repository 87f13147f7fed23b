"""Shared fixtures for backend tests."""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sample_data import chen_family_root


@pytest.fixture
def chen_root():
    """Four-generation Chen family (陈大爷 -> 陈建国 / 陈美兰 -> ...)."""
    return chen_family_root()
