"""Error taxonomy and the typed result returned by gateway calls."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from longtrip.services.gateway.schemas import GatewayResponse


class LongTripError(Exception):
    """Base class for every error raised by this package."""


class CredentialError(LongTripError):
    """No usable API key is configured. Fatal and never retried."""


class TransientTransportError(LongTripError):
    """Network failure, timeout or provider-side HTTP error."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(LongTripError):
    """The provider answered, but without usable content."""


class JSONRecoveryError(MalformedResponseError):
    """Structured output was requested but no JSON could be recovered from the text."""

    def __init__(self, message: str, *, raw_content: str = "", truncated: bool = False) -> None:
        super().__init__(message)
        self.raw_content = raw_content
        self.truncated = truncated


class ChunkGenerationFailure(LongTripError):
    """A chunk could not be generated; recovered locally with fallback days."""

    def __init__(self, chunk_id: str, cause: BaseException | str) -> None:
        super().__init__(f"Chunk {chunk_id} failed: {cause}")
        self.chunk_id = chunk_id
        self.cause = cause


@dataclass(frozen=True, slots=True)
class GatewaySuccess:
    response: "GatewayResponse"
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class TransientError:
    """Every attempt failed with a retryable error; ``error`` is the last one."""

    error: Exception
    attempts: int

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True, slots=True)
class FatalError:
    error: CredentialError
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return False


GatewayResult = Union[GatewaySuccess, TransientError, FatalError]
