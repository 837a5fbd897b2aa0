"""API routes package."""

from doclib.api.routes import auth, documents, preferences, subjects

__all__ = [
    "auth",
    "documents",
    "preferences",
    "subjects",
]
