from __future__ import annotations

import pytest

from .fakes import FakeLoop


@pytest.fixture
def loop() -> FakeLoop:
    return FakeLoop()
