import sys
from datetime import datetime
from pathlib import Path

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]

# Prefer repo sources over any installed package.
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from sensor_relay.database.config import Config  # noqa: E402


@pytest.fixture
def relay_config() -> Config:
    return Config.from_env(
        {
            "TEMPERATURE_TABLE": "temperature_readings",
            "IDS_TABLE": "id_scans",
            "POLL_INTERVAL_SECONDS": "3600",
        }
    )


@pytest.fixture
def temperature_row() -> dict:
    return {"id": 7, "celsius": 21.5, "created_at": datetime(2024, 5, 1, 12, 0, 0)}


@pytest.fixture
def id_row() -> dict:
    return {"id": 3, "card_uid": "04:A2:19:7C", "created_at": datetime(2024, 5, 1, 11, 59, 30)}
