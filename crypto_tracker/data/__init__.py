"""
Market data models and provider payload normalization.
"""
