"""fftconform: FFT conformance cases run through a thin torch.fft porting layer."""

from typing import List

import torch

from .cases import ConformanceCase, get_available_cases, get_case, load_cases
from .compare import compare, print_values, set_value
from .config import HarnessConfig
from .device import DeviceQueue, host_alloc
from .engine import (
    FFTEngine,
    make_plan_1d,
    make_plan_2d,
    make_plan_3d,
    make_plan_many,
)
from .errors import (
    CaseConfigError,
    ComputeError,
    FFTConformError,
    MemoryCopyError,
    PlanError,
)
from .layout import Layout
from .runner import CaseResult, StageResult, run_case
from .types import Direction, FFTType, LibraryDataType

__version__ = "0.1.0"


def is_case_available(case_name: str) -> bool:
    """Check if a specific case fixture ships with the package."""
    return case_name in get_available_cases()


def is_cuda_available() -> bool:
    """Check if cases can run on a CUDA device."""
    return torch.cuda.is_available()


def get_cuda_architectures() -> List[str]:
    """Get the CUDA architectures the installed torch was compiled for."""
    if not torch.cuda.is_available():
        return []
    return list(torch.cuda.get_arch_list())


__all__ = [
    "is_case_available",
    "is_cuda_available",
    "get_cuda_architectures",
    "get_available_cases",
    "get_case",
    "load_cases",
    "run_case",
    "CaseResult",
    "StageResult",
    "ConformanceCase",
    "HarnessConfig",
    "DeviceQueue",
    "host_alloc",
    "FFTEngine",
    "make_plan_1d",
    "make_plan_2d",
    "make_plan_3d",
    "make_plan_many",
    "Layout",
    "Direction",
    "FFTType",
    "LibraryDataType",
    "compare",
    "print_values",
    "set_value",
    "FFTConformError",
    "PlanError",
    "ComputeError",
    "MemoryCopyError",
    "CaseConfigError",
]
