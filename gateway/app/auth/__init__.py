"""
Authentication Package

Inbound authentication for the gateway: a static bearer secret shared with
trusted clients, checked on every /api request.

Modules:
- gate: ``require_shared_secret`` dependency and bearer header parsing
"""

from .gate import extract_bearer_token, require_shared_secret

__all__ = [
    "extract_bearer_token",
    "require_shared_secret",
]
