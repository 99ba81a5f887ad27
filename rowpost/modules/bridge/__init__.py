"""
Bridge Module - Black Box Interface

Purpose: Turn one row value into one POST with a bounded wait
Interface: RowRequestBridge.send(), send_or_raise(), __call__()
Hidden: Gate handling, outcome mapping, retry and backoff

The only module that knows how client signals become results.
"""

from .bridge import RowRequestBridge

__all__ = ["RowRequestBridge"]
