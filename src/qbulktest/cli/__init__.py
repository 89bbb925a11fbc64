"""Command line interface for qbulktest."""
