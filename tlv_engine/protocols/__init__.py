"""
Payment protocol handlers.
"""
