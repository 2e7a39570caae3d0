"""Core configuration and process lifecycle helpers."""
