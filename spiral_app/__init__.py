# spiral_app/__init__.py

"""SpiralEngine: schema-driven wellness self-tracking service."""

__version__ = "1.0.0"
