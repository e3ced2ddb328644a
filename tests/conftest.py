"""
Shared fixtures: a scripted server and operation contexts bound to it.
"""

from __future__ import annotations

import logging

import pytest

from tests.fakes import FakeServer, make_context


@pytest.fixture
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def master_ctx(server):
    """On-premises, contained-enabled server, connected to master."""
    return make_context(server, database="master")


@pytest.fixture
def app_ctx(server):
    """On-premises, contained-enabled server, connected to a user database."""
    return make_context(server, database="appdb")


@pytest.fixture
def azure_ctx(server):
    """Azure SQL Database, connected to a user database."""
    return make_context(server, azure=True, contained=False, database="appdb")


@pytest.fixture
def azure_master_ctx(server):
    return make_context(server, azure=True, contained=False, database="master")


@pytest.fixture(autouse=True)
def restore_root_logging():
    """Undo handlers installed by setup_logging during a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
