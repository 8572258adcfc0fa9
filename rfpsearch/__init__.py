"""rfpsearch -- RFP document ingestion and hybrid keyword/semantic search."""

__version__ = "0.1.0"
