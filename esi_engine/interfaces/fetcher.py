"""Abstract base class for fragment fetchers.

Fetchers never raise for network, timeout or status failures. They return
a FetchOutcome describing the failure instead.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class FetchFailureReason(str, Enum):
    """Why a fragment fetch failed."""

    TIMEOUT = "timeout"
    NETWORK = "network"
    STATUS = "status"


@dataclass(frozen=True)
class ResolvedFetch:
    """A concrete request for one include.

    Attributes:
        url: Absolute URL to GET.
        headers: Headers forwarded with the request.
    """

    url: str
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FetchOutcome:
    """Result of fetching one fragment.

    Attributes:
        url: The URL that was requested.
        text: Fragment body on success, empty otherwise.
        status_code: HTTP status when a response was received.
        reason: Failure tag, None on success.
        detail: Human readable failure description.
    """

    url: str
    text: str = ""
    status_code: int | None = None
    reason: FetchFailureReason | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def succeeded(cls, url: str, text: str, status_code: int) -> "FetchOutcome":
        return cls(url=url, text=text, status_code=status_code)

    @classmethod
    def failed(
        cls,
        url: str,
        reason: FetchFailureReason,
        detail: str,
        status_code: int | None = None,
    ) -> "FetchOutcome":
        return cls(url=url, reason=reason, detail=detail, status_code=status_code)


class BaseFragmentFetcher(ABC):
    """Abstract base class for fragment fetching strategies."""

    @abstractmethod
    async def fetch(self, request: ResolvedFetch, timeout: float) -> FetchOutcome:
        """GET a fragment.

        Args:
            request: The resolved URL and headers.
            timeout: Upper bound in seconds for the whole request.

        Returns:
            A FetchOutcome; failures are reported, not raised.
            Cancellation of the calling task still propagates.
        """
        ...

    async def aclose(self) -> None:
        """Release any held connections."""
        return None
