"""Domain Layer: value objects, errors, events and interfaces.

Holds the vocabulary shared by every coordination component. Nothing in
here schedules work or touches the event loop.
"""
