"""Image and text embeddings."""
