"""Memory layout of batched multi-dimensional transform data.

Element ``(b, i0, i1, i2)`` of a layout lives at offset::

    b * dist + ((i0 * embed[1] + i1) * embed[2] + i2) * stride

counted in elements of the side's type (real scalars for the real side of a
real transform, complex values otherwise). ``embed[0]`` only matters for the
required buffer size. Everything here is integer math so the offline
reference generator can share it.
"""

from math import prod
from typing import Optional, Sequence


class Layout:
    """Embed/stride/dist triple describing one side of a transform.

    A layout without ``embed`` is the basic (contiguous) layout; its stride and
    dist are ignored.
    """

    embed: Optional[tuple]
    stride: int
    dist: Optional[int]

    def __init__(
        self,
        embed: Optional[Sequence[int]] = None,
        stride: int = 1,
        dist: Optional[int] = None,
    ):
        self.embed = tuple(int(e) for e in embed) if embed is not None else None
        self.stride = int(stride)
        self.dist = int(dist) if dist is not None else None

    @property
    def is_basic(self) -> bool:
        return self.embed is None

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "Layout":
        if not data:
            return cls()
        return cls(
            embed=data.get("embed"),
            stride=data.get("stride", 1),
            dist=data.get("dist"),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Layout):
            return NotImplemented
        return (self.embed, self.stride, self.dist) == (
            other.embed,
            other.stride,
            other.dist,
        )

    def __repr__(self) -> str:
        return f"Layout(embed={self.embed}, stride={self.stride}, dist={self.dist})"


def complex_shape(dims: Sequence[int]) -> tuple:
    """Logical shape of the complex side of a real transform over ``dims``."""
    return tuple(dims[:-1]) + (dims[-1] // 2 + 1,)


def basic_layout(shape: Sequence[int], padded_last: Optional[int] = None) -> Layout:
    """Contiguous layout for ``shape``, optionally padding the last dimension."""
    embed = tuple(shape)
    if padded_last is not None:
        embed = embed[:-1] + (padded_last,)
    return Layout(embed=embed, stride=1, dist=prod(embed))


def element_strides(layout: Layout) -> tuple:
    """Per-dimension element strides implied by an explicit layout."""
    strides = [layout.stride]
    for extent in reversed(layout.embed[1:]):
        strides.insert(0, strides[0] * extent)
    return tuple(strides)


def required_length(shape: Sequence[int], layout: Layout, batch: int) -> int:
    """Minimum buffer length (in elements) to hold ``batch`` transforms."""
    last = (batch - 1) * layout.dist
    for size, stride in zip(shape, element_strides(layout)):
        last += (size - 1) * stride
    return last + 1


def validate_layout(shape: Sequence[int], layout: Layout) -> None:
    """Raise ``ValueError`` if an explicit layout cannot hold ``shape``."""
    if layout.is_basic:
        return
    if len(layout.embed) != len(shape):
        raise ValueError(
            f"Embed {list(layout.embed)} has {len(layout.embed)} entries, "
            f"expected one per dimension ({len(shape)})."
        )
    for axis in range(1, len(shape)):
        if layout.embed[axis] < shape[axis]:
            raise ValueError(
                f"Embed {list(layout.embed)} is smaller than the logical "
                f"shape {list(shape)} along axis {axis}."
            )
    if layout.stride < 1:
        raise ValueError(f"Stride must be >= 1, got {layout.stride}.")
    if layout.dist is None or layout.dist < 1:
        raise ValueError(f"Dist must be >= 1, got {layout.dist}.")


def logical_shapes(
    dims: Sequence[int], complex_input: bool, complex_output: bool
) -> tuple:
    """Logical (input, output) shapes of one transform over ``dims``.

    The complex side of a real transform keeps only ``dims[-1] // 2 + 1``
    values along the last dimension.
    """
    dims = tuple(dims)
    if not complex_input:
        return dims, complex_shape(dims)
    if not complex_output:
        return complex_shape(dims), dims
    return dims, dims


def resolve_layouts(
    dims: Sequence[int],
    complex_input: bool,
    complex_output: bool,
    input_layout: Layout,
    output_layout: Layout,
    in_place: bool,
) -> tuple:
    """Concrete ``(shape, layout)`` pairs for the input and output sides.

    Basic layouts become contiguous ones. In-place real transforms pad the
    real side's last dimension to ``2 * (n // 2 + 1)`` scalars so the complex
    side fits in the same buffer.
    """
    in_shape, out_shape = logical_shapes(dims, complex_input, complex_output)

    padded = None
    if in_place and complex_input != complex_output:
        padded = 2 * (dims[-1] // 2 + 1)

    if input_layout.is_basic:
        input_layout = basic_layout(in_shape, None if complex_input else padded)
    if output_layout.is_basic:
        output_layout = basic_layout(out_shape, None if complex_output else padded)

    return (in_shape, input_layout), (out_shape, output_layout)
