from unittest.mock import MagicMock

import pytest

from sunnyboy.auth import Session
from sunnyboy.config import Config
from sunnyboy.inverter import InverterClient


@pytest.fixture
def config():
    return Config(
        host="192.168.1.90",
        password="wibble-wobble",
        timeout=5,
    )


@pytest.fixture
def client(config):
    return InverterClient.from_config(config)


@pytest.fixture
def session():
    return Session(host="192.168.1.90", sid="mOi0Eg_N4kaNhg_R")


@pytest.fixture
def json_response():
    """Build a mocked requests.Response returning the given JSON body"""

    def _make(body):
        mock_response = MagicMock()
        mock_response.json.return_value = body
        mock_response.raise_for_status = MagicMock()
        return mock_response

    return _make
