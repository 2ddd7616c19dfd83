"""Record store: engines, session factories and the four issue tables."""

from civicmap.database.config import engine, Base, get_db
from civicmap.database import models

__all__ = ["engine", "Base", "get_db", "models"]
