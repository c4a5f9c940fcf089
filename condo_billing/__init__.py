"""Condominium billing and statement-of-account engine."""

__version__ = "0.1.0"
