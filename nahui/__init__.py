"""nahui - webhook ingestion server with optional MongoDB persistence."""
__version__ = "0.1.0"
