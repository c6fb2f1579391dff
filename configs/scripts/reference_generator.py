"""Offline reference value generator for conformance case fixtures.

Recomputes the ``expected`` values of a case with numpy's FFT, independently of
the torch engine the cases exercise. Stages are replayed in order on numpy
buffers following the same layout rules, and each stage's compared elements are
rounded to 6 significant digits.

Usage::

    python configs/scripts/reference_generator.py src/fftconform/cases/foo.yaml
    python configs/scripts/reference_generator.py --write src/fftconform/cases/*.yaml
"""

import argparse
import json
from math import prod
from pathlib import Path

import numpy as np
import yaml

from fftconform.cases import ConformanceCase, StageSpec
from fftconform.layout import element_strides, required_length, resolve_layouts
from fftconform.types import Direction

NUMPY_TYPE_MAP = {
    "float32": np.float32,
    "float64": np.float64,
    "complex64": np.complex64,
    "complex128": np.complex128,
}

COMPLEX_OF = {np.float32: np.complex64, np.float64: np.complex128}

SIGNIFICANT_DIGITS = 6


def _round(value: float):
    """Round to the fixture precision, keeping integral values as ints."""
    value = float(f"{value:.{SIGNIFICANT_DIGITS}g}")
    if value == 0:
        return 0
    return int(value) if value.is_integer() else value


def _scalars(buf: np.ndarray) -> np.ndarray:
    if np.iscomplexobj(buf):
        return buf.view(buf.real.dtype)
    return buf


class ReferenceGenerator:
    """Replays a case on numpy buffers and collects reference values.

    Attributes
    ----------
    case : ConformanceCase
        The parsed case.
    raw : dict
        The case document as loaded, updated in place by :meth:`generate`.
    path : Path or None
        File the case was loaded from.
    """

    def __init__(self, case: ConformanceCase, raw: dict, path: Path = None):
        self.case = case
        self.raw = raw
        self.path = path

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "ReferenceGenerator":
        """Load a generator from a YAML case file."""
        with open(yaml_path, "r") as file:
            raw = yaml.safe_load(file)
        return cls(ConformanceCase.from_dict(raw), raw, Path(yaml_path))

    @classmethod
    def from_json(cls, json_path: str) -> "ReferenceGenerator":
        """Load a generator from a JSON case file."""
        with open(json_path, "r") as file:
            raw = json.load(file)
        return cls(ConformanceCase.from_dict(raw), raw, Path(json_path))

    def _allocate(self) -> dict:
        buffers = {
            name: np.zeros(spec.length, dtype=NUMPY_TYPE_MAP[spec.dtype])
            for name, spec in self.case.buffers.items()
        }
        input_spec = self.case.buffers[self.case.input.buffer]
        buffers[input_spec.name][...] = self.case.input.build(input_spec).numpy()
        return buffers

    @staticmethod
    def _strided(buf: np.ndarray, is_complex: bool, shape, layout, batch: int):
        scalars = _scalars(buf)
        view = scalars.view(COMPLEX_OF[scalars.dtype.type]) if is_complex else scalars
        needed = required_length(shape, layout, batch)
        if view.size < needed:
            raise ValueError(
                f"Buffer holds {view.size} elements, layout needs {needed}."
            )
        strides = (layout.dist,) + element_strides(layout)
        return np.lib.stride_tricks.as_strided(
            view,
            shape=(batch,) + tuple(shape),
            strides=tuple(s * view.itemsize for s in strides),
            writeable=True,
        )

    def _run_stage(self, stage: StageSpec, buffers: dict) -> np.ndarray:
        fft_type = stage.resolved_fft_type
        complex_input = fft_type.input_type.is_complex
        complex_output = fft_type.output_type.is_complex

        (in_shape, in_layout), (out_shape, out_layout) = resolve_layouts(
            stage.dims,
            complex_input,
            complex_output,
            stage.input_layout,
            stage.output_layout,
            stage.in_place,
        )
        src = self._strided(
            buffers[stage.source], complex_input, in_shape, in_layout, stage.batch
        )
        dst = self._strided(
            buffers[stage.destination],
            complex_output,
            out_shape,
            out_layout,
            stage.batch,
        )

        x = src.astype(np.complex128 if complex_input else np.float64)
        axes = tuple(range(1, len(stage.dims) + 1))
        if not complex_input:
            y = np.fft.rfftn(x, axes=axes)
        elif not complex_output:
            y = np.fft.irfftn(x, s=stage.dims, axes=axes) * prod(stage.dims)
        elif stage.direction is Direction.FORWARD:
            y = np.fft.fftn(x, axes=axes)
        else:
            y = np.fft.ifftn(x, axes=axes) * prod(stage.dims)

        dst[...] = y.astype(dst.dtype)
        return buffers[stage.destination]

    def _expected_values(self, stage: StageSpec, out: np.ndarray, raw_stage: dict):
        complex_expected = isinstance(raw_stage["expected"][0], (list, tuple))
        if complex_expected:
            values = out
            if not np.iscomplexobj(out):
                values = out.view(COMPLEX_OF[out.dtype.type])
        else:
            values = _scalars(out)
        if stage.indices is not None:
            values = values[stage.indices]
        else:
            values = values[: len(raw_stage["expected"])]

        if complex_expected:
            return [[_round(v.real), _round(v.imag)] for v in values]
        return [_round(v) for v in values]

    def generate(self) -> dict:
        """Recompute every stage's expected values and return the document."""
        buffers = self._allocate()
        for stage, raw_stage in zip(self.case.stages, self.raw["stages"]):
            out = self._run_stage(stage, buffers)
            raw_stage["expected"] = self._expected_values(stage, out, raw_stage)
        return self.raw

    def write(self, file_path: str = None) -> None:
        """Write the regenerated document (reformats the file)."""
        file_path = Path(file_path) if file_path is not None else self.path
        with open(file_path, "w") as file:
            if file_path.suffix == ".json":
                json.dump(self.raw, file, indent=2)
            else:
                yaml.safe_dump(
                    self.raw, file, sort_keys=False, default_flow_style=None
                )


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("case_files", nargs="+", help="Case fixtures to regenerate")
    parser.add_argument(
        "--write", action="store_true", help="Rewrite the files instead of printing"
    )
    args = parser.parse_args()

    for case_file in args.case_files:
        loader = (
            ReferenceGenerator.from_json
            if case_file.endswith(".json")
            else ReferenceGenerator.from_yaml
        )
        generator = loader(case_file)
        document = generator.generate()
        if args.write:
            generator.write()
            print(f"Wrote {case_file}")
        else:
            print(f"# {document['name']}")
            for stage in document["stages"]:
                print(f"{stage['direction']}: {stage['expected']}")


if __name__ == "__main__":
    main()
