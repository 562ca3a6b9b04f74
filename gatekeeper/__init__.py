"""
Gatekeeper - request admission pipeline (blacklist, rate limiting, sanitization)
"""

__version__ = "0.1.0"
