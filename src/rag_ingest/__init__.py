"""rag-ingest — document segmentation and embedding for retrieval pipelines."""

__version__ = "0.1.0"
