"""Row-level data access for TradeQuote. Repositories never commit."""
