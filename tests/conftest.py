"""Pytest configuration for storefront_harness tests."""
import sys
from pathlib import Path

# Add src/ (src-layout imports) and the project root (tests.* stubs) to path
_PROJECT_ROOT = Path(__file__).parent.parent
_SRC = _PROJECT_ROOT / 'src'
for _path in (_SRC, _PROJECT_ROOT):
    if str(_path) not in sys.path:
        sys.path.insert(0, str(_path))

import pytest

from storefront_harness.settings import HarnessSettings

BASE_URL = 'http://storefront.test'


@pytest.fixture
def settings():
    """Settings pointing at the in-process stub storefront."""
    return HarnessSettings(base_url=BASE_URL, fail_fast=False)


@pytest.fixture
def evidence_dir(tmp_path):
    """Temporary directory for failure evidence."""
    path = tmp_path / 'evidence'
    path.mkdir()
    return path
