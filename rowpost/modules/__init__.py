"""
rowpost Modules

Dependency order (each module only imports the ones above it):
- api: data models and errors
- gate: one-shot completion signal
- client: shared HTTP client and per-process registry
- bridge: row value -> POST -> typed result
- udf: engine registration and local row execution
"""
