"""
Core modules for Release Retention.

This package contains the retention decision engine: record validation,
release ranking and selection, and the service that feeds them.
"""
