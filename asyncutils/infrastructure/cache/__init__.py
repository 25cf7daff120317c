"""Async memoization.

TTL-bounded memo entries with shared in-flight resolution, backed by an
in-memory MemoStore.
"""
