from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest

from gopackagesdriver.bazel import BazelClient, BazelDeps
from gopackagesdriver.config import DriverSettings
from tests.bazel_helpers import FakeBazel


@pytest.fixture
def fake_bazel() -> FakeBazel:
    return FakeBazel()


@pytest.fixture
def stderr_messages() -> list[str]:
    return []


@pytest.fixture
def bazel_client(fake_bazel: FakeBazel, stderr_messages: list[str]) -> BazelClient:
    return BazelClient(deps=BazelDeps(run=fake_bazel.run, print_err=stderr_messages.append))


@pytest.fixture
def settings(tmp_path: Path) -> DriverSettings:
    return DriverSettings(workspace_root=tmp_path)
