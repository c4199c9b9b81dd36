"""
banktx: atomic account transfers over pooled SQLite connections.
"""

__version__ = "0.1.0"
