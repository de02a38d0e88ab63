"""Small shared helpers."""

from .slug import plant_key, slugify, split_plant_key

__all__ = ["plant_key", "slugify", "split_plant_key"]
