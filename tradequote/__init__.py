"""TradeQuote: quote comparison and trust scoring for a trades marketplace."""

__version__ = "0.1.0"
