"""
Core domain models, configuration and data layer.
"""
