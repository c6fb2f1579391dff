"""Conformance case fixtures: parsing, validation and discovery.

Each case is one YAML (or JSON) document describing the device buffers, how the
input is initialized, and one or more transform stages with their literal
reference values. See ``fftconform/cases/*.yaml`` for examples.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

import torch
import yaml

from .config import DEFAULT_CASES_DIR
from .device import DeviceQueue, host_alloc
from .compare import set_value
from .engine import (
    FFTEngine,
    make_plan_1d,
    make_plan_2d,
    make_plan_3d,
    make_plan_many,
)
from .errors import CaseConfigError
from .layout import Layout
from .types import (
    PRECISION_MAP,
    TYPE_MAP,
    Direction,
    FFTType,
    LibraryDataType,
    complex_dtype,
    type_str_to_torch_dtype,
)

logger = logging.getLogger(__name__)

MEMORY_MODELS = ("buffer", "usm")
PLAN_APIS = ("make_plan", "basic", "advanced")
CASE_SUFFIXES = (".yaml", ".yml", ".json")


def _require(data: dict, key: str, context: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise CaseConfigError(f"{context}: missing required field '{key}'.") from None


class BufferSpec:
    """A flat device buffer declared by a case."""

    name: str
    dtype: str
    length: int

    def __init__(self, name: str, dtype: str, length: int):
        if dtype not in TYPE_MAP:
            raise CaseConfigError(
                f"Buffer '{name}': unsupported dtype '{dtype}', "
                f"expected one of {list(TYPE_MAP.keys())}."
            )
        if int(length) <= 0:
            raise CaseConfigError(f"Buffer '{name}': length must be positive.")
        self.name = name
        self.dtype = dtype
        self.length = int(length)

    @property
    def torch_dtype(self) -> torch.dtype:
        return type_str_to_torch_dtype(self.dtype)


class InputSpec:
    """How the host input buffer is initialized before upload.

    Either ``fill`` segments (each writes ``0..count-1`` at a scalar offset) or a
    literal list of ``values`` covering the buffer's scalars.
    """

    buffer: str
    fill: list
    values: Optional[list]

    def __init__(
        self, buffer: str, fill: Optional[list] = None, values: Optional[list] = None
    ):
        if (fill is None) == (values is None):
            raise CaseConfigError(
                "Input must give exactly one of 'fill' or 'values'."
            )
        self.buffer = buffer
        self.fill = [
            (int(segment.get("offset", 0)), int(_require(segment, "count", "fill")))
            for segment in (fill or [])
        ]
        self.values = list(values) if values is not None else None

    @classmethod
    def from_dict(cls, data: dict) -> "InputSpec":
        return cls(
            buffer=_require(data, "buffer", "input"),
            fill=data.get("fill"),
            values=data.get("values"),
        )

    def build(self, spec: BufferSpec) -> torch.Tensor:
        """Create and populate the host copy of the input buffer."""
        host = host_alloc(spec.length, spec.torch_dtype)
        try:
            if self.values is not None:
                scalars = (
                    torch.view_as_real(host).reshape(-1) if host.is_complex() else host
                )
                if len(self.values) != scalars.numel():
                    raise CaseConfigError(
                        f"Input values cover {len(self.values)} scalars, buffer "
                        f"'{spec.name}' holds {scalars.numel()}."
                    )
                scalars.copy_(torch.tensor(self.values, dtype=scalars.dtype))
            for offset, count in self.fill:
                set_value(host, count, offset)
        except ValueError as e:
            raise CaseConfigError(f"Input for '{spec.name}': {e}") from e
        return host


class StageSpec:
    """One transform stage: commit parameters, buffers and reference values.

    Attributes
    ----------
    direction : Direction
        Transform direction.
    api : str
        Commit flavour: "make_plan" (1D/2D/3D helpers), "basic" (batched, default
        layout) or "advanced" (batched, explicit layouts).
    dims : tuple of int
        Transform sizes.
    fft_type : FFTType or None
        Transform type; advanced stages may give input/output types instead.
    batch : int
        Number of transforms.
    input_layout, output_layout : Layout
        Advanced layouts, basic when absent.
    input_type, output_type : LibraryDataType or None
        Advanced-API element types.
    source, destination : str
        Names of the buffers read and written. Equal names mean in-place.
    expected : list
        Reference values; ``[re, im]`` pairs for complex output.
    indices : list of int or None
        When given, only these elements are compared and ``expected`` lists
        the value for each index in order.
    """

    def __init__(
        self,
        direction: str,
        dims: list,
        source: str,
        destination: str,
        expected: list,
        api: str = "make_plan",
        fft_type: Optional[str] = None,
        batch: int = 1,
        input_layout: Optional[dict] = None,
        output_layout: Optional[dict] = None,
        input_type: Optional[str] = None,
        output_type: Optional[str] = None,
        indices: Optional[list] = None,
    ):
        try:
            self.direction = Direction(direction)
            self.fft_type = FFTType(fft_type) if fft_type is not None else None
            self.input_type = (
                LibraryDataType(input_type) if input_type is not None else None
            )
            self.output_type = (
                LibraryDataType(output_type) if output_type is not None else None
            )
        except ValueError as e:
            raise CaseConfigError(f"Stage: {e}") from e

        if api not in PLAN_APIS:
            raise CaseConfigError(f"Stage: unknown api '{api}', expected {PLAN_APIS}.")
        if api != "advanced" and (input_layout or output_layout or input_type):
            raise CaseConfigError(
                f"Stage: layouts and data types need api 'advanced', got '{api}'."
            )
        missing_types = self.input_type is None or self.output_type is None
        if self.fft_type is None and missing_types:
            raise CaseConfigError(
                "Stage: give fft_type or both input_type and output_type."
            )
        if not expected:
            raise CaseConfigError("Stage: expected values must not be empty.")
        if indices is not None and len(indices) != len(expected):
            raise CaseConfigError(
                f"Stage: {len(indices)} indices but {len(expected)} expected values."
            )

        self.api = api
        self.dims = tuple(int(d) for d in dims)
        self.batch = int(batch)
        self.input_layout = Layout.from_dict(input_layout)
        self.output_layout = Layout.from_dict(output_layout)
        self.source = source
        self.destination = destination
        self.expected = list(expected)
        self.indices = [int(i) for i in indices] if indices is not None else None

    @classmethod
    def from_dict(cls, data: dict) -> "StageSpec":
        context = f"stage '{data.get('direction', '?')}'"
        return cls(
            direction=_require(data, "direction", context),
            dims=_require(data, "dims", context),
            source=_require(data, "source", context),
            destination=_require(data, "destination", context),
            expected=_require(data, "expected", context),
            api=data.get("api", "make_plan"),
            fft_type=data.get("fft_type"),
            batch=data.get("batch", 1),
            input_layout=data.get("input_layout"),
            output_layout=data.get("output_layout"),
            input_type=data.get("input_type"),
            output_type=data.get("output_type"),
            indices=data.get("indices"),
        )

    @property
    def in_place(self) -> bool:
        return self.source == self.destination

    @property
    def resolved_fft_type(self) -> FFTType:
        """Transform type, derived from the data types when not given directly."""
        if self.fft_type is not None:
            return self.fft_type
        return FFTType.from_data_types(self.input_type, self.output_type)

    def commit(self, queue: DeviceQueue) -> FFTEngine:
        """Create and commit the plan this stage describes."""
        if self.api == "make_plan":
            if len(self.dims) == 1:
                return make_plan_1d(queue, self.dims[0], self.fft_type, self.batch)
            if self.batch != 1:
                raise CaseConfigError(
                    "Stage: make_plan only batches 1D transforms, use api 'basic'."
                )
            if len(self.dims) == 2:
                return make_plan_2d(queue, *self.dims, self.fft_type)
            if len(self.dims) == 3:
                return make_plan_3d(queue, *self.dims, self.fft_type)
            raise CaseConfigError(
                f"Stage: make_plan supports 1 to 3 dimensions, got {len(self.dims)}."
            )
        if self.api == "basic":
            return make_plan_many(queue, self.dims, self.fft_type, batch=self.batch)
        return make_plan_many(
            queue,
            self.dims,
            self.fft_type,
            batch=self.batch,
            input_layout=self.input_layout,
            output_layout=self.output_layout,
            input_type=self.input_type,
            output_type=self.output_type,
        )

    def expected_tensor(self, precision: torch.dtype) -> torch.Tensor:
        """Reference values as a host tensor, scattered to ``indices`` if given."""
        is_complex = isinstance(self.expected[0], (list, tuple))
        if is_complex:
            if any(len(pair) != 2 for pair in self.expected):
                raise CaseConfigError("Stage: complex values must be [re, im] pairs.")
            values = torch.view_as_complex(
                torch.tensor(self.expected, dtype=precision)
            )
        else:
            values = torch.tensor(self.expected, dtype=precision)

        if self.indices is None:
            return values

        full = torch.zeros(
            max(self.indices) + 1,
            dtype=complex_dtype(precision) if is_complex else precision,
        )
        full[torch.tensor(self.indices, dtype=torch.long)] = values
        return full


class ConformanceCase:
    """A complete conformance case.

    Attributes
    ----------
    name : str
        Case name, also the fixture's file stem.
    description : str
        Free-form description.
    memory_model : str
        "buffer" or "usm": allocation style the case was written for.
    precision : str
        "single" or "double".
    buffers : dict of str to BufferSpec
        Device buffers, allocated in declaration order.
    input : InputSpec
        Initialization of the input buffer.
    stages : list of StageSpec
        Transform stages, run in order with fail-fast.
    """

    def __init__(
        self,
        name: str,
        buffers: dict,
        input: InputSpec,
        stages: list,
        precision: str = "single",
        memory_model: str = "usm",
        description: str = "",
    ):
        if precision not in PRECISION_MAP:
            raise CaseConfigError(
                f"Case '{name}': precision must be one of {list(PRECISION_MAP)}."
            )
        if memory_model not in MEMORY_MODELS:
            raise CaseConfigError(
                f"Case '{name}': memory_model must be one of {list(MEMORY_MODELS)}."
            )
        if not stages:
            raise CaseConfigError(f"Case '{name}': at least one stage is required.")

        self.name = name
        self.description = description
        self.memory_model = memory_model
        self.precision = precision
        self.buffers = buffers
        self.input = input
        self.stages = stages
        self._validate_buffer_references()

    def _validate_buffer_references(self) -> None:
        names = [self.input.buffer]
        for stage in self.stages:
            names.extend([stage.source, stage.destination])
        for buffer_name in names:
            if buffer_name not in self.buffers:
                raise CaseConfigError(
                    f"Case '{self.name}': unknown buffer '{buffer_name}'."
                )

    @property
    def precision_dtype(self) -> torch.dtype:
        return PRECISION_MAP[self.precision]

    @classmethod
    def from_dict(cls, data: dict) -> "ConformanceCase":
        if not isinstance(data, dict):
            raise CaseConfigError("A case document must be a mapping.")
        name = _require(data, "name", "case")
        context = f"case '{name}'"
        buffers = {
            buffer_name: BufferSpec(
                buffer_name,
                _require(spec, "dtype", buffer_name),
                _require(spec, "length", buffer_name),
            )
            for buffer_name, spec in _require(data, "buffers", context).items()
        }
        return cls(
            name=name,
            buffers=buffers,
            input=InputSpec.from_dict(_require(data, "input", context)),
            stages=[
                StageSpec.from_dict(stage)
                for stage in _require(data, "stages", context)
            ],
            precision=data.get("precision", "single"),
            memory_model=data.get("memory_model", "usm"),
            description=data.get("description", ""),
        )

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "ConformanceCase":
        """Load a case from a YAML file."""
        with open(yaml_path, "r") as file:
            data = yaml.safe_load(file)
        return cls.from_dict(data)

    @classmethod
    def from_json(cls, json_path: Union[str, Path]) -> "ConformanceCase":
        """Load a case from a JSON file."""
        with open(json_path, "r") as file:
            data = json.load(file)
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ConformanceCase":
        path = Path(path)
        if path.suffix == ".json":
            return cls.from_json(path)
        return cls.from_yaml(path)

    def __repr__(self) -> str:
        return (
            f"ConformanceCase(name={self.name!r}, precision={self.precision!r}, "
            f"memory_model={self.memory_model!r}, stages={len(self.stages)})"
        )


def _case_files(cases_dir: Optional[Union[str, Path]]) -> list:
    cases_dir = Path(cases_dir) if cases_dir is not None else DEFAULT_CASES_DIR
    if not cases_dir.is_dir():
        raise CaseConfigError(f"Case directory '{cases_dir}' does not exist.")
    return sorted(p for p in cases_dir.iterdir() if p.suffix in CASE_SUFFIXES)


def _load_case_file(path: Path) -> ConformanceCase:
    case = ConformanceCase.from_file(path)
    if case.name != path.stem:
        raise CaseConfigError(
            f"Case '{case.name}' must live in a file named after it, "
            f"found '{path.name}'."
        )
    return case


def load_cases(
    cases_dir: Optional[Union[str, Path]] = None,
    memory_model: Optional[str] = None,
) -> list:
    """Load every case in ``cases_dir``, optionally filtered by memory model."""
    cases = []
    for path in _case_files(cases_dir):
        case = _load_case_file(path)
        if memory_model is None or case.memory_model == memory_model:
            cases.append(case)
    logger.debug("Loaded %d cases from %s", len(cases), cases_dir or DEFAULT_CASES_DIR)
    return cases


def get_available_cases(cases_dir: Optional[Union[str, Path]] = None) -> list:
    """Names of the cases available in ``cases_dir``."""
    return [path.stem for path in _case_files(cases_dir)]


def get_case(
    name: str, cases_dir: Optional[Union[str, Path]] = None
) -> ConformanceCase:
    """Load a single case by name."""
    for path in _case_files(cases_dir):
        if path.stem == name:
            return _load_case_file(path)
    raise CaseConfigError(f"No case named '{name}'.")
