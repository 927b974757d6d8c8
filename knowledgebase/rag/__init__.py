"""RAG ingestion pipeline package."""

from knowledgebase.rag.chunker import chunk_text, split_documents
from knowledgebase.rag.embedder import embed_text, embed_texts
from knowledgebase.rag.ingestor import ingest_files, ingest_website, write_chunks

__all__ = [
    "chunk_text",
    "split_documents",
    "embed_text",
    "embed_texts",
    "ingest_files",
    "ingest_website",
    "write_chunks",
]
