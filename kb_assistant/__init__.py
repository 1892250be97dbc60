"""Retrieval-augmented chat over a local folder of text and PDF documents."""
