"""Tests for harness configuration precedence."""

from pathlib import Path

import pytest

from fftconform.config import (
    DEFAULT_CASES_DIR,
    DEFAULT_TOLERANCE,
    ENV_CASES_DIR,
    ENV_DEVICE,
    ENV_TOLERANCE,
    HarnessConfig,
)
from fftconform.device import resolve_device


def test_defaults():
    config = HarnessConfig.from_sources(environ={})
    assert config.device is None
    assert config.tolerance == DEFAULT_TOLERANCE
    assert config.cases_dir == DEFAULT_CASES_DIR


def test_environment_overrides_defaults():
    environ = {ENV_DEVICE: "cpu", ENV_TOLERANCE: "0.5", ENV_CASES_DIR: "/tmp/cases"}
    config = HarnessConfig.from_sources(environ=environ)
    assert config.device == "cpu"
    assert config.tolerance == 0.5
    assert config.cases_dir == Path("/tmp/cases")


def test_arguments_override_environment():
    environ = {ENV_DEVICE: "cuda:1", ENV_TOLERANCE: "0.5", ENV_CASES_DIR: "/tmp/env"}
    config = HarnessConfig.from_sources(
        device="cpu", tolerance=1e-4, cases_dir="/tmp/cli", environ=environ
    )
    assert config.device == "cpu"
    assert config.tolerance == 1e-4
    assert config.cases_dir == Path("/tmp/cli")


def test_invalid_tolerance():
    with pytest.raises(ValueError, match=ENV_TOLERANCE):
        HarnessConfig.from_sources(environ={ENV_TOLERANCE: "loose"})
    with pytest.raises(ValueError):
        HarnessConfig(tolerance=-1)


def test_resolve_device_prefers_argument(monkeypatch):
    monkeypatch.setenv(ENV_DEVICE, "cuda")
    assert resolve_device("cpu").type == "cpu"


def test_resolve_device_reads_environment(monkeypatch):
    monkeypatch.setenv(ENV_DEVICE, "cpu")
    assert resolve_device().type == "cpu"
