"""Device queue: device selection, buffer allocation, copies and blocking waits.

Device memory is plain torch tensors on the queue's device; host memory is CPU
tensors. The queue only tracks what it handed out so teardown can be checked.
"""

import logging
import os
from typing import Optional, Union

import torch

from .config import ENV_DEVICE
from .errors import MemoryCopyError
from .types import type_str_to_torch_dtype

logger = logging.getLogger(__name__)

DTypeLike = Union[str, torch.dtype]


def _to_dtype(dtype: DTypeLike) -> torch.dtype:
    if isinstance(dtype, torch.dtype):
        return dtype
    return type_str_to_torch_dtype(dtype)


def resolve_device(device: Optional[Union[str, torch.device]] = None) -> torch.device:
    """Pick the device: argument > FFTCONFORM_DEVICE > cuda if available > cpu."""
    if device is None:
        device = os.environ.get(ENV_DEVICE) or None
    if device is None:
        device = "cuda" if torch.cuda.is_available() else "cpu"

    device = torch.device(device)
    # Tensors always report an explicit index, so normalize "cuda" to "cuda:N"
    if device.type == "cuda" and device.index is None:
        device = torch.device("cuda", torch.cuda.current_device())
    return device


def host_alloc(length: int, dtype: DTypeLike) -> torch.Tensor:
    """Allocate a zero-initialized flat host buffer."""
    if length <= 0:
        raise MemoryCopyError(f"Buffer length must be positive, got {length}.")
    return torch.zeros(length, dtype=_to_dtype(dtype), device="cpu")


class DeviceQueue:
    """Single in-order queue bound to one torch device.

    Attributes
    ----------
    device : torch.device
        The device every buffer allocated by this queue lives on.
    """

    device: torch.device

    def __init__(self, device: Optional[Union[str, torch.device]] = None):
        self.device = resolve_device(device)
        self._allocations = {}
        logger.debug("Created device queue on %s", self.device)

    def malloc_device(self, length: int, dtype: DTypeLike) -> torch.Tensor:
        """Allocate an uninitialized flat buffer of ``length`` elements on device."""
        if length <= 0:
            raise MemoryCopyError(f"Buffer length must be positive, got {length}.")
        buf = torch.empty(length, dtype=_to_dtype(dtype), device=self.device)
        self._allocations[buf.data_ptr()] = buf
        logger.debug("malloc_device: %d x %s on %s", length, buf.dtype, self.device)
        return buf

    def memcpy(self, dst: torch.Tensor, src: torch.Tensor) -> torch.Tensor:
        """Copy ``src`` into ``dst``, across host and device in either direction.

        Both buffers must hold the same number of elements of the same dtype.
        The copy is blocking.
        """
        if dst.dtype != src.dtype:
            raise MemoryCopyError(
                f"memcpy dtype mismatch: dst is {dst.dtype}, src is {src.dtype}."
            )
        if dst.numel() != src.numel():
            raise MemoryCopyError(
                f"memcpy size mismatch: dst has {dst.numel()} elements, "
                f"src has {src.numel()}."
            )
        dst.copy_(src.reshape(dst.shape))
        self.wait_and_throw()
        return dst

    def free(self, buf: torch.Tensor) -> None:
        """Release a buffer previously returned by :meth:`malloc_device`."""
        if self._allocations.pop(buf.data_ptr(), None) is None:
            raise MemoryCopyError(
                "free() called on a buffer not allocated by this queue "
                "(or already freed)."
            )
        logger.debug("free: %d x %s on %s", buf.numel(), buf.dtype, self.device)

    def wait_and_throw(self) -> None:
        """Block until all work submitted on the device has finished."""
        if self.device.type == "cuda":
            torch.cuda.synchronize(self.device)

    @property
    def live_allocations(self) -> int:
        """Number of buffers allocated and not yet freed."""
        return len(self._allocations)

    def __repr__(self) -> str:
        return f"DeviceQueue(device={str(self.device)!r})"
