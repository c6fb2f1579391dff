"""Porting-layer FFT engine backed by ``torch.fft``.

An :class:`FFTEngine` is a plan handle: create it, commit a transform
configuration, compute on device buffers, destroy it. All transform math is
delegated to ``torch.fft``; this module only maps plan parameters and memory
layouts onto tensor views.
"""

import logging
from math import prod
from typing import Optional, Sequence, Union

import torch

from .device import DeviceQueue
from .errors import ComputeError, PlanError
from .layout import (
    Layout,
    element_strides,
    logical_shapes,
    required_length,
    resolve_layouts,
    validate_layout,
)
from .types import Direction, FFTType, LibraryDataType

logger = logging.getLogger(__name__)

LayoutLike = Union[Layout, dict, None]

MAX_RANK = 3


def _as_layout(layout: LayoutLike) -> Layout:
    if isinstance(layout, Layout):
        return layout
    return Layout.from_dict(layout)


def _scalar_view(buf: torch.Tensor) -> torch.Tensor:
    """Flat view of a buffer as real scalars (complex values interleaved)."""
    if buf.is_complex():
        return torch.view_as_real(buf).reshape(-1)
    return buf.reshape(-1)


def _check_no_overlap(view: torch.Tensor) -> None:
    """Every element of an output view must have its own address."""
    if view.numel() <= 1:
        return
    extent = view.storage_offset() + 1 + sum(
        (size - 1) * stride for size, stride in zip(view.shape, view.stride())
    )
    offsets = torch.arange(extent).as_strided(
        view.shape, view.stride(), view.storage_offset()
    )
    addresses = torch.unique(offsets).numel()
    if addresses != offsets.numel():
        raise ComputeError(
            f"The output layout maps {offsets.numel()} elements onto "
            f"{addresses} addresses."
        )


class FFTEngine:
    """Plan handle for one transform configuration.

    Attributes
    ----------
    queue : DeviceQueue or None
        Queue the plan was committed on.
    dims : tuple of int
        Transform sizes, slowest varying first.
    batch : int
        Number of transforms run per compute call.
    fft_type : FFTType or None
        Transform type, None until committed.
    input_layout : Layout
        Layout of the input side (basic when no embed was given).
    output_layout : Layout
        Layout of the output side (basic when no embed was given).
    """

    queue: Optional[DeviceQueue]
    dims: tuple
    batch: int
    fft_type: Optional[FFTType]
    input_layout: Layout
    output_layout: Layout

    def __init__(self):
        self.queue = None
        self.dims = ()
        self.batch = 1
        self.fft_type = None
        self.input_layout = Layout()
        self.output_layout = Layout()
        self._destroyed = False

    @classmethod
    def create(cls) -> "FFTEngine":
        """Create an uncommitted plan."""
        return cls()

    @staticmethod
    def destroy(plan: "FFTEngine") -> None:
        """Release a plan. Any later use of it raises :class:`PlanError`."""
        if plan._destroyed:
            raise PlanError("Plan was already destroyed.")
        plan._destroyed = True
        plan.queue = None
        logger.debug("Destroyed plan for dims=%s", plan.dims)

    @property
    def is_committed(self) -> bool:
        return self.fft_type is not None and not self._destroyed

    @property
    def rank(self) -> int:
        return len(self.dims)

    def commit(
        self,
        queue: DeviceQueue,
        dims: Union[int, Sequence[int]],
        fft_type: Union[FFTType, str, None] = None,
        batch: int = 1,
        input_layout: LayoutLike = None,
        output_layout: LayoutLike = None,
        input_type: Union[LibraryDataType, str, None] = None,
        output_type: Union[LibraryDataType, str, None] = None,
    ) -> "FFTEngine":
        """Configure the plan.

        Parameters
        ----------
        queue : DeviceQueue
            Queue whose device the transform runs on.
        dims : int or sequence of int
            Transform sizes (rank 1 to 3), slowest varying first.
        fft_type : FFTType or str, optional
            Transform type. May be omitted when ``input_type`` and
            ``output_type`` are both given.
        batch : int, optional
            Number of transforms, by default 1.
        input_layout, output_layout : Layout or dict, optional
            Embed/stride/dist of each side. None (or no embed) selects the
            basic layout, ignoring stride and dist.
        input_type, output_type : LibraryDataType or str, optional
            Element types of each side. Must agree with ``fft_type`` when both
            are given.

        Returns
        -------
        FFTEngine
            The plan itself, committed.
        """
        if self._destroyed:
            raise PlanError("Cannot commit a destroyed plan.")

        dims = (dims,) if isinstance(dims, int) else tuple(int(d) for d in dims)
        if not 1 <= len(dims) <= MAX_RANK:
            raise PlanError(f"Transform rank must be 1 to {MAX_RANK}, got {len(dims)}.")
        if any(d < 1 for d in dims):
            raise PlanError(f"Transform sizes must be positive, got {list(dims)}.")
        if batch < 1:
            raise PlanError(f"Batch count must be positive, got {batch}.")

        fft_type = self._resolve_fft_type(fft_type, input_type, output_type)

        input_layout = _as_layout(input_layout)
        output_layout = _as_layout(output_layout)
        in_shape, out_shape = logical_shapes(
            dims, fft_type.input_type.is_complex, fft_type.output_type.is_complex
        )
        try:
            validate_layout(in_shape, input_layout)
            validate_layout(out_shape, output_layout)
        except ValueError as e:
            raise PlanError(str(e)) from e

        self.queue = queue
        self.dims = dims
        self.batch = int(batch)
        self.fft_type = fft_type
        self.input_layout = input_layout
        self.output_layout = output_layout

        logger.debug(
            "Committed %s plan: dims=%s batch=%d input=%s output=%s",
            fft_type.value,
            list(dims),
            batch,
            input_layout,
            output_layout,
        )
        return self

    @staticmethod
    def _resolve_fft_type(fft_type, input_type, output_type) -> FFTType:
        if fft_type is not None:
            try:
                fft_type = FFTType(fft_type)
            except ValueError:
                raise PlanError(f"Unknown transform type '{fft_type}'.") from None

        if input_type is None and output_type is None:
            if fft_type is None:
                raise PlanError("Either fft_type or input/output types are required.")
            return fft_type

        if input_type is None or output_type is None:
            raise PlanError("input_type and output_type must be given together.")
        try:
            pair_type = FFTType.from_data_types(
                LibraryDataType(input_type), LibraryDataType(output_type)
            )
        except ValueError as e:
            raise PlanError(str(e)) from e

        if fft_type is not None and fft_type is not pair_type:
            raise PlanError(
                f"Transform type {fft_type.value} disagrees with data types "
                f"{pair_type.input_type.value} -> {pair_type.output_type.value}."
            )
        return pair_type

    def _check_usable(self) -> None:
        if self._destroyed:
            raise PlanError("Plan was destroyed.")
        if self.fft_type is None:
            raise PlanError("Plan must be committed before compute.")

    def _resolve_layouts(self, in_place: bool) -> tuple:
        return resolve_layouts(
            self.dims,
            self.fft_type.input_type.is_complex,
            self.fft_type.output_type.is_complex,
            self.input_layout,
            self.output_layout,
            in_place,
        )

    def _strided_view(
        self,
        buf: torch.Tensor,
        data_type: LibraryDataType,
        shape: tuple,
        layout: Layout,
        role: str,
    ) -> torch.Tensor:
        """View ``buf`` as a ``(batch, *shape)`` tensor following ``layout``."""
        if buf.device != self.queue.device:
            raise ComputeError(
                f"The {role} buffer is on {buf.device}, but the plan was committed "
                f"on {self.queue.device}."
            )
        scalars = _scalar_view(buf)
        if scalars.dtype != data_type.scalar_dtype:
            raise ComputeError(
                f"The {role} buffer holds {scalars.dtype} scalars, but "
                f"{self.fft_type.value} expects {data_type.scalar_dtype}."
            )

        if data_type.is_complex:
            if scalars.numel() % 2:
                raise ComputeError(
                    f"The {role} buffer holds an odd number of scalars and cannot "
                    "be viewed as complex values."
                )
            view = torch.view_as_complex(scalars.view(-1, 2))
        else:
            view = scalars

        needed = required_length(shape, layout, self.batch)
        if view.numel() < needed:
            raise ComputeError(
                f"The {role} buffer holds {view.numel()} elements, but the plan "
                f"layout needs {needed}."
            )
        return view.as_strided(
            (self.batch,) + tuple(shape), (layout.dist,) + element_strides(layout)
        )

    def compute(
        self,
        input: torch.Tensor,
        output: torch.Tensor,
        direction: Union[Direction, str],
    ) -> torch.Tensor:
        """Run the committed transform from ``input`` into ``output``.

        Passing the same buffer twice runs the transform in place. The
        backward transform is unnormalized. The call returns once the work is
        enqueued; call ``queue.wait_and_throw()`` before reading results.

        Returns
        -------
        torch.Tensor
            The ``output`` buffer.
        """
        self._check_usable()
        direction = Direction(direction)

        if self.fft_type.is_real_to_complex and direction is not Direction.FORWARD:
            raise ComputeError("Real-to-complex transforms only run forward.")
        if self.fft_type.is_complex_to_real and direction is not Direction.BACKWARD:
            raise ComputeError("Complex-to-real transforms only run backward.")

        in_place = _scalar_view(input).data_ptr() == _scalar_view(output).data_ptr()
        (in_shape, in_layout), (out_shape, out_layout) = self._resolve_layouts(in_place)

        src = self._strided_view(
            input, self.fft_type.input_type, in_shape, in_layout, "input"
        )
        dst = self._strided_view(
            output, self.fft_type.output_type, out_shape, out_layout, "output"
        )
        _check_no_overlap(dst)

        axes = tuple(range(1, self.rank + 1))
        if self.fft_type.is_real_to_complex:
            result = torch.fft.rfftn(src, dim=axes)
        elif self.fft_type.is_complex_to_real:
            result = torch.fft.irfftn(src, s=self.dims, dim=axes, norm="forward")
        elif direction is Direction.FORWARD:
            result = torch.fft.fftn(src, dim=axes)
        else:
            result = torch.fft.ifftn(src, dim=axes, norm="forward")

        dst.copy_(result)

        logger.debug(
            "Computed %s %s transform of %d x %s (%s)",
            direction.value,
            self.fft_type.value,
            self.batch,
            list(self.dims),
            "in-place" if in_place else "out-of-place",
        )
        return output

    def __repr__(self) -> str:
        if self._destroyed:
            state = "destroyed"
        elif self.fft_type is not None:
            state = "committed"
        else:
            state = "created"
        fft_type = self.fft_type.value if self.fft_type is not None else None
        return (
            f"FFTEngine(dims={list(self.dims)}, batch={self.batch}, "
            f"fft_type={fft_type}, state={state})"
        )


def make_plan_1d(
    queue: DeviceQueue, nx: int, fft_type: Union[FFTType, str], batch: int = 1
) -> FFTEngine:
    """Create and commit a (batched) 1D plan with the basic layout."""
    return FFTEngine.create().commit(queue, (nx,), fft_type, batch=batch)


def make_plan_2d(
    queue: DeviceQueue, nx: int, ny: int, fft_type: Union[FFTType, str]
) -> FFTEngine:
    """Create and commit a 2D plan with the basic layout."""
    return FFTEngine.create().commit(queue, (nx, ny), fft_type)


def make_plan_3d(
    queue: DeviceQueue, nx: int, ny: int, nz: int, fft_type: Union[FFTType, str]
) -> FFTEngine:
    """Create and commit a 3D plan with the basic layout."""
    return FFTEngine.create().commit(queue, (nx, ny, nz), fft_type)


def make_plan_many(
    queue: DeviceQueue,
    dims: Sequence[int],
    fft_type: Union[FFTType, str, None] = None,
    batch: int = 1,
    input_layout: LayoutLike = None,
    output_layout: LayoutLike = None,
    input_type: Union[LibraryDataType, str, None] = None,
    output_type: Union[LibraryDataType, str, None] = None,
) -> FFTEngine:
    """Create and commit a batched plan, optionally with advanced layouts."""
    return FFTEngine.create().commit(
        queue,
        dims,
        fft_type,
        batch=batch,
        input_layout=input_layout,
        output_layout=output_layout,
        input_type=input_type,
        output_type=output_type,
    )


def total_length(dims: Sequence[int]) -> int:
    """Scale factor of an unnormalized forward + backward round trip."""
    return prod(dims)
