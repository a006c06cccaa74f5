"""Reading storage layer.

This package persists normalized readings in an append-only SQLite table.
It powers watermark resolution, chunked writes, and range queries.
"""
