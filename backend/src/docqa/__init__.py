"""Retrieval-augmented question answering over a single uploaded document."""

__version__ = "0.1.0"
