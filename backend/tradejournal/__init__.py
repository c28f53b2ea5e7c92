"""
TradeJournal backend.

Rule lifecycle, version ledger and history log for a personal trading journal.
"""

__version__ = "1.0.0"
