"""daogov: governance engine for DAOs with a shared treasury."""

__version__ = "0.1.0"
