"""Knowledge-base ingestion: websites and files into namespaced vector storage."""

__version__ = "0.1.0"
