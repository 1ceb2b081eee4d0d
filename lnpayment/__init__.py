"""Lightning Network payment channel primitives: ids, node addresses, BOLT-3 and HTLCs."""

__version__ = "0.1.0"