"""
Environments Module - External Service Integrations

Architecture Overview:
======================
environments/
├── __init__.py           # Module exports
├── base.py               # Abstract base classes and provider exceptions
├── google/               # Google OAuth + Calendar
│   ├── auth/
│   └── calendar/
└── line/                 # LINE Messaging API (webhook events, replies)
    ├── client.py
    ├── messages.py
    └── schemas.py

Design Principles:
==================
1. Provider Isolation: Google and LINE code never import each other
2. Injectable clients: services receive clients through constructors
3. Provider failures surface as EnvironmentError subclasses
"""

from app.environments.base import (
    EnvironmentProvider,
    EnvironmentService,
    EnvironmentError,
    AuthenticationError,
    TokenRefreshError,
    TokenRevokedError,
    APIError,
    OAuthTokens,
)

__all__ = [
    "EnvironmentProvider",
    "EnvironmentService",
    "EnvironmentError",
    "AuthenticationError",
    "TokenRefreshError",
    "TokenRevokedError",
    "APIError",
    "OAuthTokens",
]
