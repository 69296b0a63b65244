"""
TheHive REST integration: the HTTP transport with its confirmation gate and
the typed API client.
"""

from .client import TheHiveClient
from .elicitation import confirm_with_current_session, requires_confirmation
from .http import ElicitationAdapter, TheHiveHttpClient

__all__ = [
    "ElicitationAdapter",
    "TheHiveClient",
    "TheHiveHttpClient",
    "confirm_with_current_session",
    "requires_confirmation",
]
