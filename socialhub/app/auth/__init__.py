"""
Authentication Package

Session JWT verification for the HTTP API. Login, password hashing and token
issuance belong to the account service; this package only checks the tokens
that service hands out.

Modules:
- session: Session JWT creation/verification and the ``get_current_user``
  dependency
"""

from .session import create_session_jwt, get_current_user, verify_session_jwt

__all__ = [
    "create_session_jwt",
    "get_current_user",
    "verify_session_jwt",
]
