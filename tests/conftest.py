"""Fixtures shared across the rtxspec test suite.

The YAML files under ``tests/fixtures/`` describe a handful of real RTX
commands, each chosen to exercise one area:

* ``ipsec_ike_encryption.yaml`` -- per-model ranges and license tiers.
* ``ipsec_sa_policy.yaml`` -- catalog capabilities and selector-bound fields.
* ``ipsec_ike_keepalive.yaml`` -- defaults, synonyms, deferred ``auto``,
  multi-line syntax tests.
* ``ipsec_ike_pfs.yaml`` -- pairwise parameters with ``requires`` and
  ``invalid_for`` constraints.
* ``defective.yaml`` -- several specification defects at once.
* ``catalog.yaml`` -- RTX1210 and RTX830 capability and license tables.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable

import pytest
import yaml

from rtxspec.models import CapabilityCatalog, CommandSpec
from rtxspec.output import reset_output

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def read_fixture(name: str) -> dict[str, Any]:
    return yaml.safe_load((FIXTURES_DIR / name).read_text(encoding="utf-8"))


def command_fixture(name: str) -> CommandSpec:
    from rtxspec.parser.extractor import extract_command

    return extract_command(read_fixture(name))


@pytest.fixture(autouse=True)
def _fresh_output() -> None:
    # The global OutputManager holds the streams it was built with; CliRunner
    # swaps sys.stdout/sys.stderr per invocation.
    yield
    reset_output()


# -- documents and commands --------------------------------------------------


@pytest.fixture
def fixture_path() -> Callable[[str], str]:
    return lambda name: str(FIXTURES_DIR / name)


@pytest.fixture
def encryption_raw() -> dict[str, Any]:
    return read_fixture("ipsec_ike_encryption.yaml")


@pytest.fixture
def sa_policy_raw() -> dict[str, Any]:
    return read_fixture("ipsec_sa_policy.yaml")


@pytest.fixture
def encryption_command() -> CommandSpec:
    return command_fixture("ipsec_ike_encryption.yaml")


@pytest.fixture
def sa_policy_command() -> CommandSpec:
    return command_fixture("ipsec_sa_policy.yaml")


@pytest.fixture
def keepalive_command() -> CommandSpec:
    return command_fixture("ipsec_ike_keepalive.yaml")


@pytest.fixture
def pfs_command() -> CommandSpec:
    return command_fixture("ipsec_ike_pfs.yaml")


@pytest.fixture
def catalog() -> CapabilityCatalog:
    return CapabilityCatalog.model_validate(read_fixture("catalog.yaml"))


# -- environment ---------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every XDG directory and the working directory into ``tmp_path``.

    ``RTXSPEC_*`` variables from the developer's shell are cleared so the
    config precedence tests start from defaults.
    """
    for kind in ("CONFIG", "CACHE", "DATA"):
        monkeypatch.setenv(f"XDG_{kind}_HOME", str(tmp_path / kind.lower()))
    monkeypatch.setattr("rtxspec.config._is_xdg_platform", lambda: True)
    monkeypatch.delenv("RTXSPEC_CATALOG", raising=False)
    monkeypatch.delenv("RTXSPEC_MODELS", raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
