"""Concrete adapters for the interfaces in ``rfpsearch.interfaces``."""
