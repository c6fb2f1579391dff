"""Exceptions raised by fftconform.

A numeric mismatch is never an exception: it is reported as a failing stage by
the runner. Everything here signals a misuse of the porting layer or a broken
fixture.
"""


class FFTConformError(Exception):
    """Base class for all fftconform errors."""


class PlanError(FFTConformError):
    """Invalid commit parameters, or a plan used before commit / after destroy."""


class ComputeError(FFTConformError):
    """Buffers handed to ``compute`` do not fit the committed plan."""


class MemoryCopyError(FFTConformError):
    """Invalid allocation, copy or free request."""


class CaseConfigError(FFTConformError):
    """A conformance case fixture is malformed."""
