"""
gokigen - offline-first mood journal core.
"""

__version__ = "0.1.0"
