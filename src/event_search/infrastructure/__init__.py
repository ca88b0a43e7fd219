"""
Infrastructure Layer - External event APIs and result caching.
"""
