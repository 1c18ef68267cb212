"""Image discovery and metadata extraction."""
