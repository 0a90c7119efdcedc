# tests/conftest.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import logging
import yaml
import pytest
import pytest_asyncio
from infra.http_client import HttpClient

@pytest.fixture
def test_cfg():
    def load_cfg():
        with open(Path(__file__).resolve().parents[1] / "config.yaml", "r", encoding="utf-8") as f:
            return yaml.safe_load(f)
    return load_cfg()


@pytest_asyncio.fixture
async def http_client(test_cfg):
    """
    HttpClient managed as an async context, session closed after each test.
    """
    logger = logging.getLogger("HttpClientTest")
    async with HttpClient(test_cfg, logger=logger) as client:
        yield client
