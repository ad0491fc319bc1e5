"""Exception types raised by the Agent Bar URL matcher."""

from __future__ import annotations


class InvalidUrlError(ValueError):
    """Raised when a URL can neither be parsed strictly nor by the fallback shape."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url!r}")
        self.url = url


class ContractViolationError(TypeError):
    """Raised when a matcher entry point is called with arguments of the wrong shape."""
