"""QR artifact generation and tiered storage service."""

__version__ = "0.1.0"
