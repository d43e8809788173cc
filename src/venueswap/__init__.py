"""Two-venue trading client: on-chain market maker offers and cross-chain access."""

__version__ = "0.1.0"
