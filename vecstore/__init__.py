"""
vecstore - in-process vector similarity search with snapshot persistence.
"""

from .core.config import VERSION as __version__
