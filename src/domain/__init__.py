"""Domain models and the cost basis engine for the crypto taxes report.

This package contains in-memory (Pydantic) models describing unified
transactions and tax events, plus the pure pipeline that turns them into a
yearly report. They are independent from persistence models so that business
logic and testing can evolve without DB coupling.
"""

__all__ = [
    "aggregator",
    "classifier",
    "lot_tracker",
    "tax_engine",
    "tax_event",
    "tax_report",
    "transactions",
]
