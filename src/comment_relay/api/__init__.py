"""HTTP API for the comment relay."""
