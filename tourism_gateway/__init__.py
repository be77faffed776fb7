"""
Korea tourism public-data gateway.
"""

__version__ = "2.0.0"
