"""Transform type, data type and direction enums shared across fftconform."""

from enum import Enum

import torch


TYPE_MAP = {
    "float32": torch.float32,
    "float64": torch.float64,
    "complex64": torch.complex64,
    "complex128": torch.complex128,
}

PRECISION_MAP = {
    "single": torch.float32,
    "double": torch.float64,
}


def type_str_to_torch_dtype(type_str: str) -> torch.dtype:
    """Convert a type string (e.g. "complex64") to a torch dtype."""
    try:
        return TYPE_MAP[type_str]
    except KeyError:
        raise ValueError(
            f"Unsupported data type '{type_str}'. "
            f"Expected one of {list(TYPE_MAP.keys())}."
        ) from None


def scalar_dtype(dtype: torch.dtype) -> torch.dtype:
    """Return the real scalar dtype backing ``dtype`` (complex64 -> float32)."""
    if dtype == torch.complex64:
        return torch.float32
    if dtype == torch.complex128:
        return torch.float64
    return dtype


def complex_dtype(dtype: torch.dtype) -> torch.dtype:
    """Return the complex dtype built from the real scalar ``dtype``."""
    if dtype == torch.float32:
        return torch.complex64
    if dtype == torch.float64:
        return torch.complex128
    return dtype


class Direction(Enum):
    """Direction of a transform."""

    FORWARD = "forward"
    BACKWARD = "backward"


class LibraryDataType(Enum):
    """Element type of one side of a transform (advanced commit API)."""

    REAL_FLOAT = "real_float"
    COMPLEX_FLOAT = "complex_float"
    REAL_DOUBLE = "real_double"
    COMPLEX_DOUBLE = "complex_double"

    @property
    def is_complex(self) -> bool:
        return self in (LibraryDataType.COMPLEX_FLOAT, LibraryDataType.COMPLEX_DOUBLE)

    @property
    def scalar_dtype(self) -> torch.dtype:
        if self in (LibraryDataType.REAL_FLOAT, LibraryDataType.COMPLEX_FLOAT):
            return torch.float32
        return torch.float64


class FFTType(Enum):
    """Transform type, naming the input and output element types."""

    REAL_FLOAT_TO_COMPLEX_FLOAT = "real_float_to_complex_float"
    COMPLEX_FLOAT_TO_REAL_FLOAT = "complex_float_to_real_float"
    REAL_DOUBLE_TO_COMPLEX_DOUBLE = "real_double_to_complex_double"
    COMPLEX_DOUBLE_TO_REAL_DOUBLE = "complex_double_to_real_double"
    COMPLEX_FLOAT_TO_COMPLEX_FLOAT = "complex_float_to_complex_float"
    COMPLEX_DOUBLE_TO_COMPLEX_DOUBLE = "complex_double_to_complex_double"

    @property
    def input_type(self) -> LibraryDataType:
        return _FFT_TYPE_PAIRS[self][0]

    @property
    def output_type(self) -> LibraryDataType:
        return _FFT_TYPE_PAIRS[self][1]

    @property
    def is_real_to_complex(self) -> bool:
        return not self.input_type.is_complex

    @property
    def is_complex_to_real(self) -> bool:
        return not self.output_type.is_complex

    @property
    def scalar_dtype(self) -> torch.dtype:
        return self.input_type.scalar_dtype

    @classmethod
    def from_data_types(
        cls, input_type: LibraryDataType, output_type: LibraryDataType
    ) -> "FFTType":
        """Look up the transform type for an (input, output) data type pair."""
        for fft_type, pair in _FFT_TYPE_PAIRS.items():
            if pair == (input_type, output_type):
                return fft_type
        raise ValueError(
            f"No transform converts {input_type.value} to {output_type.value}."
        )


_FFT_TYPE_PAIRS = {
    FFTType.REAL_FLOAT_TO_COMPLEX_FLOAT: (
        LibraryDataType.REAL_FLOAT,
        LibraryDataType.COMPLEX_FLOAT,
    ),
    FFTType.COMPLEX_FLOAT_TO_REAL_FLOAT: (
        LibraryDataType.COMPLEX_FLOAT,
        LibraryDataType.REAL_FLOAT,
    ),
    FFTType.REAL_DOUBLE_TO_COMPLEX_DOUBLE: (
        LibraryDataType.REAL_DOUBLE,
        LibraryDataType.COMPLEX_DOUBLE,
    ),
    FFTType.COMPLEX_DOUBLE_TO_REAL_DOUBLE: (
        LibraryDataType.COMPLEX_DOUBLE,
        LibraryDataType.REAL_DOUBLE,
    ),
    FFTType.COMPLEX_FLOAT_TO_COMPLEX_FLOAT: (
        LibraryDataType.COMPLEX_FLOAT,
        LibraryDataType.COMPLEX_FLOAT,
    ),
    FFTType.COMPLEX_DOUBLE_TO_COMPLEX_DOUBLE: (
        LibraryDataType.COMPLEX_DOUBLE,
        LibraryDataType.COMPLEX_DOUBLE,
    ),
}
