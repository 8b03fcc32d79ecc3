"""Knowledge base for the general assistant: chunking, embeddings and retrieval."""
