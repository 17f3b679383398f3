"""
Web Services Package.

Service layer helpers that keep Flask routes thin.

ARCHITECTURE RULE:
- Services may ONLY import from core/* modules
"""

from web.services import feed_service

__all__ = ["feed_service"]
