"""Processing layers."""
