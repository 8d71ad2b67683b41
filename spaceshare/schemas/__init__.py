"""
SpaceShare Backend — Pydantic Schemas
======================================

API contracts (camelCase on the wire) and the validated command objects the
route layer hands to the services.
"""
