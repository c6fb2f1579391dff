import torch

import fftconform
from fftconform import DeviceQueue, MemoryCopyError, host_alloc

import pytest


def test_exports():
    """Every name in __all__ is importable from the package."""
    for name in fftconform.__all__:
        assert hasattr(fftconform, name), name


def test_cuda_helpers():
    assert fftconform.is_cuda_available() == torch.cuda.is_available()
    if not torch.cuda.is_available():
        assert fftconform.get_cuda_architectures() == []


def test_queue_memory_round_trip():
    queue = DeviceQueue("cpu")
    host = host_alloc(4, "float64")
    host[:] = torch.arange(4, dtype=torch.float64)

    device_buf = queue.malloc_device(4, "float64")
    queue.memcpy(device_buf, host)
    back = host_alloc(4, torch.float64)
    queue.memcpy(back, device_buf)

    assert back.tolist() == [0, 1, 2, 3]
    assert queue.live_allocations == 1
    queue.free(device_buf)
    assert queue.live_allocations == 0


def test_queue_memory_errors():
    queue = DeviceQueue("cpu")
    buf = queue.malloc_device(4, "complex64")

    with pytest.raises(MemoryCopyError):
        queue.memcpy(buf, host_alloc(4, "float32"))
    with pytest.raises(MemoryCopyError):
        queue.memcpy(buf, host_alloc(3, "complex64"))
    with pytest.raises(MemoryCopyError):
        queue.malloc_device(0, "float32")

    queue.free(buf)
    with pytest.raises(MemoryCopyError):
        queue.free(buf)
