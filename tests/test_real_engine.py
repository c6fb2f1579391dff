"""Real-to-complex and complex-to-real transforms compared against torch.fft."""

from math import prod

import torch
import pytest

from fftconform import (
    DeviceQueue,
    FFTEngine,
    FFTType,
    make_plan_1d,
    make_plan_2d,
    make_plan_3d,
    make_plan_many,
)

DEVICE = "cuda" if torch.cuda.is_available() else "cpu"

FFT_SHAPES = [(6,), (7,), (4, 5), (4, 8), (2, 2, 3), (3, 4, 6)]
BATCH_SIZES = [1, 2]
DATA_TYPES = [
    (
        torch.float32,
        FFTType.REAL_FLOAT_TO_COMPLEX_FLOAT,
        FFTType.COMPLEX_FLOAT_TO_REAL_FLOAT,
    ),
    (
        torch.float64,
        FFTType.REAL_DOUBLE_TO_COMPLEX_DOUBLE,
        FFTType.COMPLEX_DOUBLE_TO_REAL_DOUBLE,
    ),
]


def run_real_round_trip_test(
    fft_shape: tuple,
    batch_size: int,
    dtype: torch.dtype,
    r2c_type: FFTType,
    c2r_type: FFTType,
    atol: float = 1e-3,
):
    """Runs an out-of-place R2C forward then C2R backward transform.

    Parameters
    ----------
    fft_shape : tuple of int
        Transform sizes.
    batch_size : int
        Number of transforms in the batch.
    dtype : torch.dtype
        Real dtype of the input.
    r2c_type, c2r_type : FFTType
        Forward and backward transform types matching ``dtype``.
    atol : float, optional
        Absolute tolerance, by default 1e-3 (looser for accumulated
        multi-dimensional transforms).
    """
    queue = DeviceQueue(DEVICE)
    axes = tuple(range(1, len(fft_shape) + 1))

    x0 = torch.randn((batch_size,) + fft_shape, dtype=dtype, device=DEVICE)
    expected = torch.fft.rfftn(x0, dim=axes)

    input_data = x0.clone().reshape(-1)
    output_data = torch.zeros(expected.numel(), dtype=expected.dtype, device=DEVICE)
    backward_data = torch.zeros_like(input_data)

    plan_fwd = make_plan_many(queue, fft_shape, r2c_type, batch=batch_size)
    plan_fwd.compute(input_data, output_data, "forward")
    queue.wait_and_throw()
    FFTEngine.destroy(plan_fwd)

    assert torch.allclose(
        output_data.reshape(expected.shape), expected, atol=atol
    ), "Real FFT results do not match ground truth"

    plan_bwd = make_plan_many(queue, fft_shape, c2r_type, batch=batch_size)
    plan_bwd.compute(output_data, backward_data, "backward")
    queue.wait_and_throw()
    FFTEngine.destroy(plan_bwd)

    assert torch.allclose(
        backward_data.reshape(x0.shape), x0 * prod(fft_shape), atol=atol * 10
    ), "Inverse real FFT results do not match the scaled input"


def run_in_place_real_test(
    fft_shape: tuple,
    batch_size: int,
    dtype: torch.dtype,
    r2c_type: FFTType,
    c2r_type: FFTType,
    atol: float = 1e-3,
):
    """Runs an in-place R2C then C2R transform on a padded real buffer."""
    queue = DeviceQueue(DEVICE)
    axes = tuple(range(1, len(fft_shape) + 1))
    n_last = fft_shape[-1]
    padded = 2 * (n_last // 2 + 1)

    x0 = torch.randn((batch_size,) + fft_shape, dtype=dtype, device=DEVICE)
    expected = torch.fft.rfftn(x0, dim=axes)

    data = torch.zeros(
        (batch_size,) + fft_shape[:-1] + (padded,), dtype=dtype, device=DEVICE
    )
    data[..., :n_last] = x0
    flat = data.reshape(-1)

    plan_fwd = make_plan_many(queue, fft_shape, r2c_type, batch=batch_size)
    plan_fwd.compute(flat, flat, "forward")
    queue.wait_and_throw()
    FFTEngine.destroy(plan_fwd)

    output = torch.view_as_complex(data.reshape(data.shape[:-1] + (padded // 2, 2)))
    assert torch.allclose(output, expected, atol=atol), "In-place R2C mismatch"

    plan_bwd = make_plan_many(queue, fft_shape, c2r_type, batch=batch_size)
    plan_bwd.compute(flat, flat, "backward")
    queue.wait_and_throw()
    FFTEngine.destroy(plan_bwd)

    assert torch.allclose(
        data[..., :n_last], x0 * prod(fft_shape), atol=atol * 10
    ), "In-place C2R mismatch"


@pytest.mark.parametrize("fft_shape", FFT_SHAPES)
@pytest.mark.parametrize("batch_size", BATCH_SIZES)
@pytest.mark.parametrize("dtype,r2c_type,c2r_type", DATA_TYPES)
def test_real_fft_out_of_place(fft_shape, batch_size, dtype, r2c_type, c2r_type):
    """Test R2C/C2R round trips out of place."""
    run_real_round_trip_test(fft_shape, batch_size, dtype, r2c_type, c2r_type)


@pytest.mark.parametrize("fft_shape", FFT_SHAPES)
@pytest.mark.parametrize("batch_size", BATCH_SIZES)
@pytest.mark.parametrize("dtype,r2c_type,c2r_type", DATA_TYPES)
def test_real_fft_in_place(fft_shape, batch_size, dtype, r2c_type, c2r_type):
    """Test R2C/C2R round trips in place with the padded real layout."""
    run_in_place_real_test(fft_shape, batch_size, dtype, r2c_type, c2r_type)


def test_make_plan_helpers_commit_expected_dims():
    """The make_plan helpers commit basic-layout plans of the right rank."""
    queue = DeviceQueue(DEVICE)

    plan_1d = make_plan_1d(queue, 8, FFTType.REAL_FLOAT_TO_COMPLEX_FLOAT, batch=4)
    plan_2d = make_plan_2d(queue, 4, 5, FFTType.REAL_DOUBLE_TO_COMPLEX_DOUBLE)
    plan_3d = make_plan_3d(queue, 2, 3, 4, "complex_float_to_complex_float")

    assert (plan_1d.dims, plan_1d.batch) == ((8,), 4)
    assert (plan_2d.dims, plan_2d.batch) == ((4, 5), 1)
    assert plan_3d.dims == (2, 3, 4)
    assert all(p.is_committed for p in (plan_1d, plan_2d, plan_3d))
    assert plan_3d.input_layout.is_basic and plan_3d.output_layout.is_basic

    for plan in (plan_1d, plan_2d, plan_3d):
        FFTEngine.destroy(plan)
        assert not plan.is_committed
