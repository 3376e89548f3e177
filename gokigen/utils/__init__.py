"""Utility functions for gokigen."""

from gokigen.utils.helpers import as_aware, ensure_dir, get_data_path, utcnow, with_timeout

__all__ = ["ensure_dir", "get_data_path", "utcnow", "as_aware", "with_timeout"]
