"""
Core infrastructure: settings, logging, database, metrics, middleware, errors
"""
