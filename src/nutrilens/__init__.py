"""NutriLens: food photo classification."""

__version__ = "0.1.0"
