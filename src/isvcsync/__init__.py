"""Delta-based reconciliation of resources owned by an InferenceService."""

__version__ = "0.1.0"
