"""Run conformance cases: upload, transform, read back, compare, tear down."""

import logging
import sys
from typing import Optional, TextIO

import torch

from .cases import ConformanceCase, StageSpec
from .compare import compare, match_units, max_abs_error, print_values
from .config import DEFAULT_TOLERANCE
from .device import DeviceQueue, host_alloc
from .engine import FFTEngine
from .errors import CaseConfigError

logger = logging.getLogger(__name__)


class StageResult:
    """Outcome of one transform stage."""

    direction: str
    passed: bool
    skipped: bool
    max_abs_error: Optional[float]

    def __init__(
        self,
        direction: str,
        passed: bool = False,
        skipped: bool = False,
        max_abs_error: Optional[float] = None,
    ):
        self.direction = direction
        self.passed = passed
        self.skipped = skipped
        self.max_abs_error = max_abs_error

    def __repr__(self) -> str:
        status = "skipped" if self.skipped else ("passed" if self.passed else "failed")
        return (
            f"StageResult({self.direction}, {status}, "
            f"max_abs_error={self.max_abs_error})"
        )


class CaseResult:
    """Outcome of a case. Truthy only when every stage ran and passed."""

    name: str
    stages: list

    def __init__(self, name: str, stages: Optional[list] = None):
        self.name = name
        self.stages = stages if stages is not None else []

    @property
    def passed(self) -> bool:
        return bool(self.stages) and all(
            stage.passed and not stage.skipped for stage in self.stages
        )

    def __bool__(self) -> bool:
        return self.passed

    def __repr__(self) -> str:
        return f"CaseResult({self.name!r}, passed={self.passed}, stages={self.stages})"


def _run_stage(
    case: ConformanceCase,
    stage: StageSpec,
    queue: DeviceQueue,
    buffers: dict,
    tolerance: float,
    stream: TextIO,
) -> StageResult:
    source = buffers[stage.source]
    destination = buffers[stage.destination]

    plan = stage.commit(queue)
    try:
        plan.compute(source, destination, stage.direction)
        queue.wait_and_throw()
    finally:
        FFTEngine.destroy(plan)

    actual = host_alloc(destination.numel(), destination.dtype)
    queue.memcpy(actual, destination)

    expected = stage.expected_tensor(case.precision_dtype)
    try:
        passed = compare(expected, actual, indices=stage.indices, tolerance=tolerance)
        error = max_abs_error(expected, actual, indices=stage.indices)
    except ValueError as e:
        raise CaseConfigError(
            f"Case '{case.name}': {stage.direction.value} references do not fit "
            f"buffer '{stage.destination}': {e}"
        ) from e

    if not passed:
        expected, actual = match_units(expected, actual)
        count = None if stage.indices is not None else expected.numel()
        label = f"{stage.direction.value}_odata"
        print(f"{label}_h:", file=stream)
        print_values(actual, count=count, indices=stage.indices, file=stream)
        print(f"{label}_ref:", file=stream)
        print_values(expected, count=count, indices=stage.indices, file=stream)

    logger.debug(
        "%s: %s stage %s (max abs error %.3g)",
        case.name,
        stage.direction.value,
        "passed" if passed else "failed",
        error,
    )
    return StageResult(stage.direction.value, passed=passed, max_abs_error=error)


def run_case(
    case: ConformanceCase,
    queue: Optional[DeviceQueue] = None,
    tolerance: Optional[float] = None,
    stream: Optional[TextIO] = None,
) -> CaseResult:
    """Run every stage of ``case``, stopping at the first mismatch.

    Parameters
    ----------
    case : ConformanceCase
        The case to run.
    queue : DeviceQueue, optional
        Queue to run on. A new one on the default device is created if omitted.
    tolerance : float, optional
        Absolute comparison tolerance, by default ``DEFAULT_TOLERANCE``.
    stream : TextIO, optional
        Where mismatch diagnostics are printed, by default stdout.

    Returns
    -------
    CaseResult
        Per-stage results. Stages after a failing one are marked skipped.
    """
    queue = DeviceQueue() if queue is None else queue
    tolerance = DEFAULT_TOLERANCE if tolerance is None else tolerance
    stream = sys.stdout if stream is None else stream

    result = CaseResult(case.name)
    buffers = {}
    try:
        for name, spec in case.buffers.items():
            buffers[name] = queue.malloc_device(spec.length, spec.torch_dtype)

        input_spec = case.buffers[case.input.buffer]
        queue.memcpy(buffers[input_spec.name], case.input.build(input_spec))

        with torch.no_grad():
            for index, stage in enumerate(case.stages):
                stage_result = _run_stage(
                    case, stage, queue, buffers, tolerance, stream
                )
                result.stages.append(stage_result)
                if not stage_result.passed:
                    result.stages.extend(
                        StageResult(skipped_stage.direction.value, skipped=True)
                        for skipped_stage in case.stages[index + 1 :]
                    )
                    break
    finally:
        for buf in buffers.values():
            queue.free(buf)

    logger.info("%s: %s", case.name, "Pass" if result.passed else "Fail")
    return result
