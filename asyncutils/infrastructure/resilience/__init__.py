"""Resilience primitives.

Delay, timeout racing, retry with backoff, and debounce/throttle rate
limiters.
"""
