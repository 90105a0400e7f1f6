"""Ingredient label recognition and allergen/diet conflict analysis."""

__version__ = "0.1.0"
