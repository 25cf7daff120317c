"""Concurrency control.

Slot-based admission shared by the bounded concurrency runner and the
addressable task queue.
"""
