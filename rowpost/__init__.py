"""
rowpost - Row-to-Request Bridge

Turns a per-row user function of a bulk data engine into a one-shot
HTTP POST with a bounded wait and a typed result.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- api: Shared data models and errors
- gate: One-shot completion signal
- client: Shared asynchronous HTTP client
- bridge: Row-to-request bridge
- udf: Engine registration and local row execution
"""

__version__ = "1.0.0"
