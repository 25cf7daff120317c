"""Domain models: value objects, policies and the error taxonomy."""
