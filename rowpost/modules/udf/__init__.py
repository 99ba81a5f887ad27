"""
UDF Module - Black Box Interface

Purpose: Expose the bridge as a row-level user function
Interface: RowFunction, register_udf(), map_rows()
Hidden: Per-process client resolution, thread pool execution

Works with any engine whose session offers udf.register().
"""

from .udf import RowFunction, map_rows, register_udf

__all__ = ["RowFunction", "map_rows", "register_udf"]
