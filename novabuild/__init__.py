"""
NovaBuild - natural-language web app builder backend.
"""
__version__ = "1.0.0"
