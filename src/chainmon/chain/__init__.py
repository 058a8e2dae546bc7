"""Chain access: data models, client protocol and the Substrate adapter."""

from __future__ import annotations

from chainmon.chain.client import ChainClient
from chainmon.chain.models import Event, Extrinsic, Header

__all__ = ["ChainClient", "Event", "Extrinsic", "Header"]
