"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Loading text and PDF documents
- Paragraph chunking with overlap
- Embedding generation and caching
- Embedding and keyword retrieval
- Watching the knowledge folder
"""
