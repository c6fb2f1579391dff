"""Harness configuration resolved from CLI arguments, environment and defaults."""

import os
from pathlib import Path
from typing import Optional

DEFAULT_TOLERANCE = 1e-2
DEFAULT_CASES_DIR = Path(__file__).parent / "cases"

ENV_DEVICE = "FFTCONFORM_DEVICE"
ENV_TOLERANCE = "FFTCONFORM_TOLERANCE"
ENV_CASES_DIR = "FFTCONFORM_CASES_DIR"


class HarnessConfig:
    """Settings shared by every case in a run.

    Attributes
    ----------
    device : str or None
        Torch device string the queue runs on. None lets the queue pick CUDA
        when available and fall back to the CPU.
    tolerance : float
        Absolute tolerance used when comparing against reference values.
    cases_dir : Path
        Directory holding the YAML case fixtures.
    """

    device: Optional[str]
    tolerance: float
    cases_dir: Path

    def __init__(
        self,
        device: Optional[str] = None,
        tolerance: float = DEFAULT_TOLERANCE,
        cases_dir: Optional[Path] = None,
    ):
        if tolerance < 0:
            raise ValueError(f"Tolerance must be non-negative, got {tolerance}.")
        self.device = device
        self.tolerance = float(tolerance)
        self.cases_dir = Path(cases_dir) if cases_dir is not None else DEFAULT_CASES_DIR

    @classmethod
    def from_sources(
        cls,
        device: Optional[str] = None,
        tolerance: Optional[float] = None,
        cases_dir: Optional[str] = None,
        environ: Optional[dict] = None,
    ) -> "HarnessConfig":
        """Resolve each setting with precedence: arguments > env vars > defaults."""
        environ = os.environ if environ is None else environ

        device = device or environ.get(ENV_DEVICE) or None

        if tolerance is None:
            env_tolerance = environ.get(ENV_TOLERANCE)
            try:
                tolerance = (
                    float(env_tolerance) if env_tolerance else DEFAULT_TOLERANCE
                )
            except ValueError:
                raise ValueError(
                    f"{ENV_TOLERANCE} must be a number, got '{env_tolerance}'."
                ) from None

        cases_dir = cases_dir or environ.get(ENV_CASES_DIR) or None

        return cls(device=device, tolerance=tolerance, cases_dir=cases_dir)

    def __repr__(self) -> str:
        return (
            f"HarnessConfig(device={self.device!r}, tolerance={self.tolerance!r}, "
            f"cases_dir={str(self.cases_dir)!r})"
        )
