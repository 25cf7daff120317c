"""Core Application Layer: orchestrates the demonstration use cases.

Connects the CLI to the coordination components through the simulation
service and the command handler.
"""
