"""Fatal error types raised by the sine-Gordon solver."""


class SgError(RuntimeError):
    """Base class for all fatal solver errors."""


class AllocationError(SgError):
    """A field or spectral buffer could not be allocated."""


class PlanCreationError(SgError):
    """An FFT plan could not be built for the requested grid (or was already released)."""


class NumericalInstabilityError(SgError):
    """Non-finite values appeared in the field."""
