"""Change-driven synchronization.

This package detects source file changes, debounces notifications,
and coordinates resync cycles against the reading store.
"""
