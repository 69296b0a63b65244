"""
TheHive MCP server.

Exposes TheHive cases, alerts, tasks and observables to AI agents over the
Model Context Protocol.
"""

__version__ = "0.3.0"
