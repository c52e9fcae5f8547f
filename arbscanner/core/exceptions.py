from typing import Optional

class ScannerError(Exception):
    """Base exception for the arbitrage scanner."""
    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

class QuoteError(ScannerError):
    """Failure of a single venue quote."""
    reason = "quote_error"

    def __init__(
        self,
        message: str,
        venue: Optional[str] = None,
        details: Optional[dict] = None
    ):
        super().__init__(message, details)
        self.venue = venue

    def __str__(self):
        if self.venue:
            return f"[{self.venue}] {self.message}"
        return self.message

class NoLiquidity(QuoteError):
    """No pool or route exists for the pair."""
    reason = "no_liquidity"

class InvalidQuoteData(NoLiquidity):
    """Provider returned malformed numeric fields."""
    reason = "invalid_quote_data"

class ProviderUnavailable(QuoteError):
    """Upstream call errored or timed out."""
    reason = "provider_unavailable"

class Throttled(QuoteError):
    """Upstream signalled rate limiting (HTTP 429)."""
    reason = "throttled"

class SessionConfigError(ScannerError):
    """Settings or asset list unavailable when a scan session starts."""

class OpportunityNotFound(ScannerError):
    """No opportunity with the requested id."""
