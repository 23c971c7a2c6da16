"""API route modules."""
from flowbuilder.api import builder

__all__ = ["builder"]
