"""
Pipeline errors.

Fatal errors (configuration, engine initialization) abort a run with a
single terminal error. Cancellation is reported separately so callers can
tell "stopped by request" from "failed". Per-frame recognition errors are
always recovered inside the OCR scheduler.
"""


class OCRPipelineError(RuntimeError):
    """Base class for all pipeline errors."""


class ConfigurationError(OCRPipelineError, ValueError):
    """Invalid run parameters (e.g. a non-positive frame rate)."""


class EngineInitializationError(OCRPipelineError):
    """The OCR engine could not be constructed (missing or unloadable models)."""


class FrameRecognitionError(OCRPipelineError):
    """A single frame could not be decoded or recognized."""

    def __init__(self, frame_index: int, reason: str):
        super().__init__(f"Frame {frame_index}: {reason}")
        self.frame_index = frame_index
        self.reason = reason


class CancellationError(OCRPipelineError):
    """The job was cancelled through its cancellation token."""

    def __init__(self, job_id: str):
        super().__init__(f"Job '{job_id}' was cancelled")
        self.job_id = job_id
