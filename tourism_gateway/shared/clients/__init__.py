"""
Upstream API clients.
"""
