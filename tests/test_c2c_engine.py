"""Complex-to-complex transforms through FFTEngine compared against torch.fft."""

from math import prod

import torch
import pytest

from fftconform import DeviceQueue, FFTEngine, FFTType, make_plan_many

DEVICE = "cuda" if torch.cuda.is_available() else "cpu"

FFT_SHAPES = [(8,), (16,), (3, 5), (4, 8), (2, 3, 4), (4, 4, 4)]
BATCH_SIZES = [1, 3]
DATA_TYPES = [
    (torch.complex64, FFTType.COMPLEX_FLOAT_TO_COMPLEX_FLOAT),
    (torch.complex128, FFTType.COMPLEX_DOUBLE_TO_COMPLEX_DOUBLE),
]


def run_forward_c2c_test(
    fft_shape: tuple,
    batch_size: int,
    dtype: torch.dtype,
    fft_type: FFTType,
    in_place: bool,
    atol: float = 1e-3,
):
    """Runs a single forward C2C transform and checks it against torch.fft.fftn.

    Parameters
    ----------
    fft_shape : tuple of int
        Transform sizes.
    batch_size : int
        Number of transforms in the batch.
    dtype : torch.dtype
        Complex dtype of the buffers.
    fft_type : FFTType
        Transform type matching ``dtype``.
    in_place : bool
        Whether the output buffer is the input buffer.
    atol : float, optional
        Absolute tolerance, by default 1e-3.
    """
    queue = DeviceQueue(DEVICE)
    axes = tuple(range(1, len(fft_shape) + 1))

    x0 = torch.randn((batch_size,) + fft_shape, dtype=dtype, device=DEVICE)
    expected = torch.fft.fftn(x0, dim=axes)

    data = x0.clone().reshape(-1)
    output = data if in_place else torch.empty_like(data)

    plan = make_plan_many(queue, fft_shape, fft_type, batch=batch_size)
    plan.compute(data, output, "forward")
    queue.wait_and_throw()
    FFTEngine.destroy(plan)

    assert torch.allclose(
        output.reshape(expected.shape), expected, atol=atol
    ), f"FFT results do not match ground truth. Max diff: {torch.max(torch.abs(output.reshape(expected.shape) - expected))}"


def run_backward_c2c_test(
    fft_shape: tuple,
    batch_size: int,
    dtype: torch.dtype,
    fft_type: FFTType,
    in_place: bool,
    atol: float = 1e-3,
):
    """Runs a single backward C2C transform, which is unnormalized."""
    queue = DeviceQueue(DEVICE)
    axes = tuple(range(1, len(fft_shape) + 1))

    x0 = torch.randn((batch_size,) + fft_shape, dtype=dtype, device=DEVICE)
    expected = torch.fft.ifftn(x0, dim=axes)
    expected *= float(prod(fft_shape))  # Scale the output to match the inverse FFT definition

    data = x0.clone().reshape(-1)
    output = data if in_place else torch.empty_like(data)

    plan = make_plan_many(queue, fft_shape, fft_type, batch=batch_size)
    plan.compute(data, output, "backward")
    queue.wait_and_throw()
    FFTEngine.destroy(plan)

    assert torch.allclose(
        output.reshape(expected.shape), expected, atol=atol
    ), "Inverse FFT results do not match ground truth"


@pytest.mark.parametrize("fft_shape", FFT_SHAPES)
@pytest.mark.parametrize("batch_size", BATCH_SIZES)
@pytest.mark.parametrize("dtype,fft_type", DATA_TYPES)
@pytest.mark.parametrize("in_place", [False, True])
def test_fft_c2c(fft_shape, batch_size, dtype, fft_type, in_place):
    """Test forward C2C transforms for each shape, batch, dtype and placement."""
    run_forward_c2c_test(fft_shape, batch_size, dtype, fft_type, in_place)


@pytest.mark.parametrize("fft_shape", FFT_SHAPES)
@pytest.mark.parametrize("batch_size", BATCH_SIZES)
@pytest.mark.parametrize("dtype,fft_type", DATA_TYPES)
@pytest.mark.parametrize("in_place", [False, True])
def test_ifft_c2c(fft_shape, batch_size, dtype, fft_type, in_place):
    """Test backward C2C transforms for each shape, batch, dtype and placement."""
    run_backward_c2c_test(fft_shape, batch_size, dtype, fft_type, in_place)


def test_c2c_round_trip_scales_by_total_length():
    """Forward then backward returns the input times the transform length."""
    queue = DeviceQueue(DEVICE)
    fft_shape = (4, 6)
    x0 = torch.randn(fft_shape, dtype=torch.complex128, device=DEVICE)
    data = x0.clone().reshape(-1)

    plan = make_plan_many(queue, fft_shape, "complex_double_to_complex_double")
    plan.compute(data, data, "forward")
    plan.compute(data, data, "backward")
    queue.wait_and_throw()
    FFTEngine.destroy(plan)

    assert torch.allclose(data.reshape(fft_shape), x0 * 24, atol=1e-9)
