"""Rate limiting adapters.

This package provides a small abstraction layer so the guards start with an
in-memory, per-process limiter and can later move to a shared store without
changing the API layer.
"""
