from __future__ import annotations


class VolmonError(Exception):
    """Base class for monitor errors."""


class ContractValidationError(VolmonError):
    """Raised when a provider contract cannot be turned into a snapshot."""

    def __init__(self, message: str, *, contract: str | None = None):
        super().__init__(message)
        self.contract = contract


class GreeksInputError(VolmonError, ValueError):
    """Raised when the Greeks approximation receives non-finite or out-of-range inputs."""


class ProviderError(VolmonError):
    """Raised when the market data provider fails for a symbol."""

    def __init__(self, message: str, *, symbol: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.symbol = symbol
        self.status_code = status_code


class ProviderNotFoundError(ProviderError):
    """Raised when the provider returns a 404 for a given resource."""


class StateError(VolmonError):
    """Raised when a snapshot generation is read before it was ever written."""
