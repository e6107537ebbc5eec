"""Knowledge Ingestion service: document ingestion pipeline and hybrid retrieval."""

__version__ = "0.1.0"
