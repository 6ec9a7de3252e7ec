"""DNA Composer — module composition and migration engine."""

__version__ = "0.1.0"
