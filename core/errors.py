"""
Error taxonomy for the Conflict Atlas services.

Every error carries the HTTP status it maps to and a JSON body, so the web
layer renders all of them through a single Flask error handler.

    ConflictAtlasError
    ├── InvalidRequest              400  bad or missing identifiers
    ├── NotFound                    404
    ├── ServerMisconfigured         500  raised before any network I/O
    ├── UpstreamGenerationFailure   500
    │   ├── GenerationFailed             backend returned a non-success status
    │   └── GenerationEmpty              backend returned no text
    └── UpstreamFetchFailed         500  UNHCR / UCDP / dataset fetch failed
"""

from __future__ import annotations

from typing import Any, Optional


class ConflictAtlasError(Exception):
    """Base class for errors that are reported to the client as JSON."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class InvalidRequest(ConflictAtlasError):
    status_code = 400


class NotFound(ConflictAtlasError):
    status_code = 404


class ServerMisconfigured(ConflictAtlasError):
    status_code = 500


class UpstreamGenerationFailure(ConflictAtlasError):
    status_code = 500


class GenerationFailed(UpstreamGenerationFailure):
    """The text-generation backend answered with a non-success response.

    The upstream status and body are kept for diagnostics. They are serialised
    under ``openaiStatus`` / ``openaiBody``, the field names existing clients
    already read.
    """

    def __init__(
        self,
        upstream_status: Optional[int],
        upstream_body: str,
        message: str = "Summary generation request failed",
    ) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.upstream_body = upstream_body

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        if self.upstream_status is not None:
            body["openaiStatus"] = self.upstream_status
        body["openaiBody"] = self.upstream_body
        return body


class GenerationEmpty(UpstreamGenerationFailure):
    def __init__(self, message: str = "Generation backend returned no summary") -> None:
        super().__init__(message)


class UpstreamFetchFailed(ConflictAtlasError):
    status_code = 500
