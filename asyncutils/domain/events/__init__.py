"""Domain Event definitions.

Represents significant occurrences in a task's lifecycle that callers may
observe through explicit callback hooks.
"""
