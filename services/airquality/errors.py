"""
Error taxonomy for the cities catalog.

  InputError           caller mistakes (country, pagination, cache scope). Never retried.
  UpstreamError        a single client call failed. Subclasses keep HTTP status
                       failures distinguishable from network failures.
  UpstreamUnavailable  every data source failed for a request.
  LookupDegraded       canonicalization / description lookup failed. Always
                       caught and converted into a fail-open default.
  PersistenceError     reputation / history store I/O failure.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all catalog errors."""


class InputError(CatalogError):
    """Bad request parameters. Surfaced to the caller as-is."""


class UpstreamError(CatalogError):
    """A single upstream call failed."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class UpstreamHTTPError(UpstreamError):
    def __init__(self, source: str, status_code: int, message: str = "") -> None:
        super().__init__(source, f"HTTP {status_code} {message}".strip())
        self.status_code = status_code


class UpstreamNetworkError(UpstreamError):
    pass


class UpstreamFormatError(UpstreamError):
    """Response arrived but did not have the expected shape."""


class UpstreamUnavailable(CatalogError):
    """All data sources failed for the requested country."""

    def __init__(self, country: str, failures: list[tuple[str, str]]) -> None:
        detail = "; ".join(f"{name}: {reason}" for name, reason in failures)
        super().__init__(f"No data source available for {country} ({detail})")
        self.country = country
        self.failures = failures


class LookupDegraded(CatalogError):
    """External lookup failed; callers fall back to a safe default."""


class PersistenceError(CatalogError):
    """Durable store failure."""
