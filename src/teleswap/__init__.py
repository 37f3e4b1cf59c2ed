"""TeleSwap - Bitcoin <-> Polygon swap orchestration over the TeleportDAO bridge."""

__version__ = "0.1.0"
