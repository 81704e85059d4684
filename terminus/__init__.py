"""Railway Terminus: Railway project monitoring for fixed-size displays."""

__version__ = "1.0.0"
