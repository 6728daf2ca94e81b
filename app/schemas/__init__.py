"""
Schemas module - Request/Response schemas for API endpoints.

Documents live in MongoDB as plain dicts; schemas are the API contract
(what the client sends, and the few fixed-shape responses).
"""
