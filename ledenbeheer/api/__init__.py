"""
HTTP API blueprints for Ledenbeheer.
"""
