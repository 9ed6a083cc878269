"""
Database module initialization.
Exports the connection handle used throughout the application.
"""

from peoplebase.database.connection import MongoConnection, sanitize_mongodb_url

__all__ = [
    "MongoConnection",
    "sanitize_mongodb_url",
]
