"""Pytest configuration for test isolation.

The CLI and the session helpers persist state to a default project-relative
file (``./.p2p_flows/session.json``). When tests run in the same working tree
that file would leak transactions, aliases and filters from one test into the
next.

To keep tests hermetic, we redirect the session file into a unique temporary
directory for each test via an autouse fixture.
"""

from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolate_session_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Force a per-test session path so tests don't share on-disk state.

    The application reads ``P2P_FLOWS_SESSION_PATH`` (when set) to override the
    default location. We point it at the test's own temporary directory and
    clear the alias threshold override so CLI defaults stay predictable.
    """

    session_path = tmp_path / "state" / "session.json"
    monkeypatch.setenv("P2P_FLOWS_SESSION_PATH", os.fspath(session_path))
    monkeypatch.delenv("P2P_FLOWS_ALIAS_THRESHOLD", raising=False)
    return session_path
