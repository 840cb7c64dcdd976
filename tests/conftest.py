from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

import pytest

from dissect.fixedvhd.disk import create


@pytest.fixture
def image_size() -> int:
    return 4 * 1024 * 1024


@pytest.fixture
def timestamp() -> datetime:
    return datetime(2020, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def unique_id() -> UUID:
    return UUID("6f3c1a52-9d0e-4b7a-8c21-5e4f0d9b7a13")


@pytest.fixture
def vhd_path(tmp_path: Path, image_size: int, timestamp: datetime, unique_id: UUID) -> Path:
    path = tmp_path / "test.vhd"
    create(path, image_size, timestamp=timestamp, unique_id=unique_id)
    return path
