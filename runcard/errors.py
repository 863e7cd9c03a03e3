class RuncardError(Exception):
    """Base class for everything the composer raises on purpose."""


class DecodeFailure(RuncardError, ValueError):
    """A source image could not be read. Fatal for the current run."""


class RenderBackendUnavailable(RuncardError, RuntimeError):
    """The OpenCV drawing primitives the compositor needs are missing."""


class PipelineStateError(RuncardError, RuntimeError):
    """An operation was requested before the run reached the required state."""
