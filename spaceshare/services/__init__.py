"""
SpaceShare Backend — Services Layer
=====================================

Business logic between the routes (HTTP) and the database.

Service Inventory:
    - AuthService:            password hashing, session tokens
    - UserService:            sign-up, sign-in, profiles, rated users
    - ListingService:         places/rockets create, edit, read, delete, like
    - FeedQueryEngine:        paginated/filtered/searched feeds
    - RatingService:          per-user ratings and top listings
    - ConsistencyCoordinator: all-or-nothing multi-record writes
    - FileService:            image validation, storage and release

Each module ends with a singleton wired to the application settings;
tests construct their own instances with their own Settings.
"""
