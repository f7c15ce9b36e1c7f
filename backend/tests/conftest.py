import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.momenta.catalog import load_catalog  # noqa: E402
from backend.momenta.settings import settings  # noqa: E402


@pytest.fixture(autouse=True)
def offline_settings():
    original_key = settings.OPENAI_API_KEY
    settings.OPENAI_API_KEY = None
    yield
    settings.OPENAI_API_KEY = original_key


@pytest.fixture(scope="session")
def catalog():
    return load_catalog()
