"""
Real-DB test fixtures and configuration.

Provides:
- Gating on LOCAL_TEST / AZURE_TEST so the suite is skipped by default
- A connected PermissionsClient per target, built from LOCAL_MSSQL_* or
  AZURE_MSSQL_* environment variables
- Unique principal names so runs never collide
"""

from __future__ import annotations

import os
import uuid
from typing import Generator

import pytest

from mssqlpermissions.application.client import PermissionsClient
from mssqlpermissions.infrastructure.config_loader import settings_from_env


# ═══════════════════════════════════════════════════════════════════════════
# MARKERS
# ═══════════════════════════════════════════════════════════════════════════


def pytest_collection_modifyitems(config, items):
    """Skip realdb tests whose target flag is not set."""
    flags = {"local": os.environ.get("LOCAL_TEST"), "azure": os.environ.get("AZURE_TEST")}
    for item in items:
        if "realdb" not in item.keywords:
            continue
        target = item.callspec.params.get("target") if hasattr(item, "callspec") else None
        if target is None:
            continue
        if not flags.get(target):
            item.add_marker(pytest.mark.skip(reason=f"{target.upper()}_TEST not set"))


# ═══════════════════════════════════════════════════════════════════════════
# FIXTURES
# ═══════════════════════════════════════════════════════════════════════════


PREFIXES = {"local": "LOCAL_MSSQL", "azure": "AZURE_MSSQL"}


@pytest.fixture(params=["local", "azure"])
def target(request) -> str:
    return request.param


@pytest.fixture
def client(target: str) -> Generator[PermissionsClient, None, None]:
    """Client connected to the target's application database."""
    settings = settings_from_env(PREFIXES[target])
    with PermissionsClient(settings.to_connector()) as permissions_client:
        yield permissions_client


@pytest.fixture
def master_client(target: str) -> Generator[PermissionsClient, None, None]:
    """Client connected to master on the same server."""
    settings = settings_from_env(PREFIXES[target]).model_copy(update={"database": "master"})
    with PermissionsClient(settings.to_connector()) as permissions_client:
        yield permissions_client


@pytest.fixture
def unique_name() -> str:
    return f"mssqlperm_{uuid.uuid4().hex[:10]}"
