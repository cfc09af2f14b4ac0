"""
SPIED - Bootstrapped pattern-based entity learning.

Grows per-label phrase dictionaries from a few seed phrases by alternately
learning context patterns around known phrases and accepting the phrases
those patterns extract.
"""

__version__ = "0.1.0"
