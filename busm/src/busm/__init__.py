"""BUSM: Business Unified Schema Model toolkit."""

__version__ = "0.1.0"
