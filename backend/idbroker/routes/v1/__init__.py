"""
Versioned API routes, mounted under /v1 by ``main.py``.
"""
