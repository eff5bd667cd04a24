"""
Database module containing session management and base models.
"""
from townsquare.db.session import get_db, async_session_maker, engine
from townsquare.db.base import Base

__all__ = ["get_db", "async_session_maker", "engine", "Base"]
