"""Tests that application modules import cleanly in a fresh interpreter."""

import subprocess
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@pytest.mark.parametrize(
    "module",
    [
        "app.main",
        "app.api.deps",
        "app.infrastructure.n8n_client",
        "app.domain.services",
        "app.domain.exceptions",
    ],
)
def test_module_imports_first(module):
    # Each module is imported first so import cycles surface
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=PROJECT_ROOT,
        capture_output=True,
        text=True,
        timeout=60,
    )
    assert result.returncode == 0, result.stderr
