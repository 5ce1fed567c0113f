"""Processing nodes for inference, indexing and retrieval."""
