"""Infrastructure Layer: concrete implementations.

Holds the coordination components themselves (resilience, concurrency,
cache) together with configuration, logging and console adapters.
"""
