"""Persistence layer for plans and plants."""

from .schema import Plan, Plant, PlantStatus
from .store import DEFAULT_DB_PATH, ForestStore, PersistenceError

__all__ = [
    "DEFAULT_DB_PATH",
    "ForestStore",
    "PersistenceError",
    "Plan",
    "Plant",
    "PlantStatus",
]
