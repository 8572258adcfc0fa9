"""Pipeline services: chunking, embedding, ingestion, search and uploads."""
