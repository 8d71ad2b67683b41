"""
SpaceShare Backend — API Routes Package
=========================================

Route Inventory:
    - users.py:     /api/users (signup, signin, ranking, profile)
    - listings.py:  /api/places and /api/rockets (one router per category)
    - uploads.py:   GET /uploads/{path} (stored images)
    - health.py:    GET /health
    - forms.py:     multipart/JSON field helpers

Routes stay thin: collect fields, build a validated command, call a
service. Business rules live in the services.
"""
