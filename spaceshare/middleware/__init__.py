"""
SpaceShare Backend — Middleware Package
========================================

Cross-cutting request handling.

Middleware chain (outermost first):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

Authorization is not middleware: `auth.require_auth` / `auth.optional_auth`
are FastAPI dependencies declared by the routes that need an acting user.
"""
