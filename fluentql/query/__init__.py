"""Statement model, builders and compiled queries."""
