import os
from pathlib import Path

import pytest
from lcplatform.config import get_settings

INTEGRATION_DIR = Path(__file__).parent / "integration"

@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path):
    # sin LC_* del shell ni .env del directorio de trabajo: cada test ve los defaults
    for key in [k for k in os.environ if k.startswith("LC_")]:
        monkeypatch.delenv(key)
    monkeypatch.setenv("LC_CRS_OUT", "EPSG:4326")
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()

def pytest_collection_modifyitems(items):
    for item in items:
        if INTEGRATION_DIR in item.path.parents:
            item.add_marker(pytest.mark.integration)
        if "integration" in item.keywords and os.environ.get("CI") == "true":
            item.add_marker(pytest.mark.slow)
