"""Configuration module for the evaluation workflow service."""

from .settings import settings, get_settings
from .database import get_db, engine, SessionLocal

__all__ = ["settings", "get_settings", "get_db", "engine", "SessionLocal"]
