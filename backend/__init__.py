"""
WeddingDesk API backend (FastAPI).
"""
