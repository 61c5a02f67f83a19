"""
Routers module - API endpoint handlers organized by feature.

- webhook: LINE Messaging API deliveries
- google_auth: Google OAuth linking for LINE users
"""
