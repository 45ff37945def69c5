"""
Utility helpers
"""
