"""
Authentication helpers for the SecretShare web app.

Design goals:
- Local username/password accounts (bcrypt, salted).
- Federated login via OAuth2 authorization code (Google, Facebook).
- Server-held sessions referenced by a signed, HttpOnly cookie.
"""
