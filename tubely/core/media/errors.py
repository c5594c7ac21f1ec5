"""
Typed failures for the upload pipeline.

Every stage raises one of these instead of a bare exception so the
orchestrator and the HTTP layer can decide what the caller sees without
string matching. The four families map onto how the failure is handled:

- ValidationError: the caller sent something we won't process (4xx)
- ResourceFault: local disk or temp file trouble (5xx, caller resubmits)
- ExternalToolFault: ffprobe/ffmpeg could not run or failed (5xx)
- StorageFault: object store, signing or record store trouble (5xx)

None of these are fatal to the process; they are scoped to one request.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for every failure the upload pipeline can surface."""

    status_code: int = 500

    def __init__(self, message: str, diagnostics: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        # captured stderr or backend error text, logged but never returned
        self.diagnostics = diagnostics


# ---------------------------------------------------------------------------
# Validation (user-facing 4xx)
# ---------------------------------------------------------------------------

class ValidationError(PipelineError):
    status_code = 400


class UnsupportedMediaType(ValidationError):
    pass


class InvalidIdentifier(ValidationError):
    pass


class InvalidDimensions(ValidationError):
    pass


class NotOwner(ValidationError):
    status_code = 401


class RecordNotFound(ValidationError):
    status_code = 404


class SizeExceeded(ValidationError):
    status_code = 413


# ---------------------------------------------------------------------------
# Local resources
# ---------------------------------------------------------------------------

class ResourceFault(PipelineError):
    pass


class IOFault(ResourceFault):
    pass


# ---------------------------------------------------------------------------
# External media tools
# ---------------------------------------------------------------------------

class ExternalToolFault(PipelineError):
    pass


class ProbeUnavailable(ExternalToolFault):
    pass


class ProbeFailed(ExternalToolFault):
    pass


class ProbeOutputMalformed(ExternalToolFault):
    pass


class NoStreamData(ExternalToolFault):
    pass


class RemuxUnavailable(ExternalToolFault):
    pass


class RemuxFailed(ExternalToolFault):
    pass


# ---------------------------------------------------------------------------
# Object store, URL signing, record store
# ---------------------------------------------------------------------------

class StorageFault(PipelineError):
    pass


class UploadRejected(StorageFault):
    pass


class SigningUnavailable(StorageFault):
    pass


class SigningFailed(StorageFault):
    pass


class ConfigInvalid(StorageFault):
    pass


class InvalidObjectRef(StorageFault):
    pass


class RecordStoreFault(StorageFault):
    pass
