"""Replicate Secrets across namespaces as declared by Source resources."""

__version__ = "0.1.0"
