"""Comment relay: OAuth-gated comments for embedded blog widgets."""

__version__ = "0.1.0"
