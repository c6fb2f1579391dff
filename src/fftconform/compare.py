"""Fill, compare and print helpers shared by every conformance case."""

import sys
from typing import Optional, Sequence, TextIO

import torch

from .config import DEFAULT_TOLERANCE


def _scalars(values: torch.Tensor) -> torch.Tensor:
    if values.is_complex():
        return torch.view_as_real(values).reshape(-1)
    return values.reshape(-1)


def set_value(buf: torch.Tensor, count: int, offset: int = 0) -> torch.Tensor:
    """Write ``0, 1, ..., count - 1`` into the real scalars of ``buf``.

    Complex buffers are filled through their interleaved scalar view, so
    element ``k`` of a filled complex buffer is ``(2k, 2k + 1)``.
    """
    scalars = _scalars(buf)
    if offset < 0 or offset + count > scalars.numel():
        raise ValueError(
            f"Fill of {count} values at offset {offset} overruns a buffer of "
            f"{scalars.numel()} scalars."
        )
    scalars[offset : offset + count] = torch.arange(
        count, dtype=scalars.dtype, device=scalars.device
    )
    return buf


def match_units(expected: torch.Tensor, actual: torch.Tensor) -> tuple:
    """Flatten both arrays on the host, in the element units of ``expected``.

    Complex references against a real buffer view the buffer as interleaved
    complex values. Real references against a complex buffer compare the
    interleaved scalars of both.
    """
    expected = expected.detach().cpu().reshape(-1)
    actual = actual.detach().cpu().reshape(-1)

    if expected.is_complex() and not actual.is_complex():
        if actual.numel() % 2:
            raise ValueError(
                f"Cannot read {actual.numel()} real scalars as complex values."
            )
        actual = torch.view_as_complex(actual.contiguous().view(-1, 2))
    elif actual.is_complex() and not expected.is_complex():
        expected, actual = _scalars(expected), _scalars(actual)
    return expected, actual


def _select(
    expected: torch.Tensor,
    actual: torch.Tensor,
    count: Optional[int],
    indices: Optional[Sequence[int]],
) -> tuple:
    """Pick the compared elements of both arrays as real tensors on the host."""
    expected, actual = match_units(expected, actual)

    if indices is not None:
        indices = list(indices)
        limit = min(expected.numel(), actual.numel())
        if any(i < 0 or i >= limit for i in indices):
            raise ValueError(
                f"Indices {indices} fall outside the {limit} comparable elements."
            )
        index = torch.as_tensor(indices, dtype=torch.long)
        expected, actual = expected[index], actual[index]
    else:
        count = expected.numel() if count is None else count
        if count > expected.numel() or count > actual.numel():
            raise ValueError(
                f"Cannot compare {count} elements: expected has "
                f"{expected.numel()}, actual has {actual.numel()}."
            )
        expected, actual = expected[:count], actual[:count]

    # Real and imaginary parts are checked independently
    return _scalars(expected).to(torch.float64), _scalars(actual).to(torch.float64)


def max_abs_error(
    expected: torch.Tensor,
    actual: torch.Tensor,
    count: Optional[int] = None,
    indices: Optional[Sequence[int]] = None,
) -> float:
    """Largest component-wise absolute difference over the compared elements."""
    expected, actual = _select(expected, actual, count, indices)
    if expected.numel() == 0:
        return 0.0
    return torch.max(torch.abs(expected - actual)).item()


def compare(
    expected: torch.Tensor,
    actual: torch.Tensor,
    count: Optional[int] = None,
    indices: Optional[Sequence[int]] = None,
    tolerance: float = DEFAULT_TOLERANCE,
) -> bool:
    """Check ``actual`` against ``expected`` within an absolute tolerance.

    Parameters
    ----------
    expected : torch.Tensor
        Reference values.
    actual : torch.Tensor
        Values read back from the device.
    count : int, optional
        Compare only the first ``count`` elements of ``expected``. Defaults to
        every element of ``expected``.
    indices : sequence of int, optional
        Compare only these elements. Takes precedence over ``count``.

    Raises
    ------
    ValueError
        When ``count`` or ``indices`` reach past either array.
    tolerance : float, optional
        Absolute tolerance per real or imaginary component.

    Returns
    -------
    bool
        True when every compared component is within tolerance.
    """
    expected, actual = _select(expected, actual, count, indices)
    return torch.allclose(actual, expected, rtol=0.0, atol=tolerance)


def _format_value(value) -> str:
    if isinstance(value, complex):
        return f"({value.real:g}, {value.imag:g})"
    return f"{value:g}"


def print_values(
    values: torch.Tensor,
    count: Optional[int] = None,
    indices: Optional[Sequence[int]] = None,
    file: Optional[TextIO] = None,
) -> None:
    """Print the selected elements of ``values`` on one line."""
    file = sys.stdout if file is None else file
    flat = values.detach().cpu().reshape(-1)
    if indices is None:
        indices = range(flat.numel() if count is None else count)
    print(" ".join(_format_value(flat[i].item()) for i in indices), file=file)
