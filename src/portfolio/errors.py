from __future__ import annotations


class PortfolioError(Exception):
    pass


class AuthenticationError(PortfolioError):
    """Raised when a request does not carry the expected shared secret."""


class UpstreamApiError(PortfolioError):
    """The GitHub API call failed: network error, rate limit or non-2xx status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class PersistenceError(PortfolioError):
    pass
