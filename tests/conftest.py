"""Shared pytest fixtures for all test modules."""

import os
import subprocess
import sys

import pytest

import vscale_machine.redact as redact_module
from vscale_machine.provisioning.types import HostRecord, PollPolicy

PROJECT_ROOT = os.path.normpath(os.path.join(os.path.dirname(__file__), ".."))

ACCESS_TOKEN = "test-access-token-0123456789"


@pytest.fixture(scope="session")
def project_root():
    """Absolute path to the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def run_cli(project_root):
    """Return a callable that invokes the vscale-machine CLI as a subprocess."""

    def _run(*args, env=None):
        full_env = {k: v for k, v in os.environ.items() if not k.startswith("VSCALE_")}
        full_env.update(env or {})
        result = subprocess.run(
            [sys.executable, "-m", "vscale_machine.vscale_machine", *args],
            capture_output=True,
            text=True,
            cwd=project_root,
            env=full_env,
        )
        return result.returncode, result.stdout, result.stderr

    return _run


# ── Unit-test fixtures ──────────────────────────────────────────────


@pytest.fixture
def host_record(tmp_path):
    """A pre-creation host record with its store under tmp_path."""
    return HostRecord(
        access_token=ACCESS_TOKEN,
        machine_name="test-machine",
        store_path=str(tmp_path / "machines" / "test-machine"),
    )


@pytest.fixture
def created_record(host_record):
    """A host record as it looks after a successful create."""
    host_record.scalet_id = 10299
    host_record.ssh_key_id = 16
    host_record.ip_address = "95.213.191.98"
    return host_record


@pytest.fixture
def fast_poll():
    """Poll policy without sleeping between attempts."""
    return PollPolicy(interval=0, max_attempts=5)


@pytest.fixture(autouse=True)
def _reset_redaction():
    """Keep the redaction cache from leaking between tests."""
    redact_module._patterns = None
    redact_module._extra_secrets.clear()
    yield
    redact_module._patterns = None
    redact_module._extra_secrets.clear()
