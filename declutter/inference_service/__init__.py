"""Embedding inference service and its HTTP client."""
