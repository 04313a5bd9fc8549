"""
Core helpers: JSON scanning and observability.
"""
