"""py-chainmon: block-stream notifications for Substrate chains."""

from __future__ import annotations

__version__ = "0.1.0"
