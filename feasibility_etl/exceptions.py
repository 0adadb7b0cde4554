"""Custom exceptions for the feasibility ETL."""

from __future__ import annotations

from typing import TYPE_CHECKING


if TYPE_CHECKING:  # pragma: no cover - type checking only
    from feasibility_etl.schemas.records import FetchOutcome


class FeasibilityEtlError(Exception):
    """Base exception for all feasibility ETL errors."""

    pass


class ConfigurationError(FeasibilityEtlError):
    """Raised when configuration is invalid or required values are missing."""

    pass


class TransportError(FeasibilityEtlError):
    """Raised when the primary search request cannot reach the API."""

    pass


class ProtocolError(FeasibilityEtlError):
    """Raised when the primary search request returns a non-success status."""

    def __init__(self, status_code: int, uri: str) -> None:
        super().__init__(f"Search request to {uri} failed with status code {status_code}")
        self.status_code = status_code
        self.uri = uri


class SubFetchFailure(FeasibilityEtlError):
    """Raised inside the executor when a supplemental fetch fails.

    Never escapes the executor: it is captured as a failure outcome.
    """

    def __init__(self, uri: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.uri = uri
        self.status_code = status_code


class TransformationError(FeasibilityEtlError):
    """Raised when a derived-metric transform is applied to invalid input."""

    pass


class ThresholdExceededError(FeasibilityEtlError):
    """Raised when too many primary records were dropped during reconciliation."""

    def __init__(
        self,
        change: float,
        threshold: float,
        failures: list[FetchOutcome],
    ) -> None:
        lines = [
            f"{outcome.failure.uri} - {outcome.failure.status}"
            for outcome in failures
            if outcome.failure is not None
        ]
        message = (
            "Excessive supplemental data requests failed. "
            f"Percent failure: {change:.2f}. Error threshold: {threshold:g}.\n"
            "Failed requests:\n" + "\n".join(lines)
        )
        super().__init__(message)
        self.change = change
        self.threshold = threshold
        self.failures = failures

    @property
    def failed_requests(self) -> list[tuple[str, int | None]]:
        """Return (uri, status) pairs for every failing supplemental fetch."""

        return [
            (outcome.failure.uri, outcome.failure.status)
            for outcome in self.failures
            if outcome.failure is not None
        ]


class RowWriteError(FeasibilityEtlError):
    """Raised when a single row cannot be written to the sink."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"Failed to write row '{key}': {message}")
        self.key = key
        self.detail = message


class PersistenceConnectionError(FeasibilityEtlError):
    """Raised when the persistence session cannot be established."""

    pass
