"""
Build event handlers.
"""

from .listener import PublisherListener

__all__ = ["PublisherListener"]
