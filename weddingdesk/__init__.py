"""
WeddingDesk: operational state aggregation and live notifications for a
wedding-coordination business.
"""

__version__ = "0.1.0"
