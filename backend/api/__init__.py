"""API route handlers."""
from . import positions

__all__ = ["positions"]
