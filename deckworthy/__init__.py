"""
Deckworthy - Steam Deck game deals aggregator
"""

__version__ = "1.0.0"
