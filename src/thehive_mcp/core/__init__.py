"""
Core utilities for the TheHive MCP server.

This package holds:
- configuration loading (`config.py`)
- credential records and validation (`credentials.py`)
- shared error types (`errors.py`)
- logging helpers (`logging.py`)
"""
