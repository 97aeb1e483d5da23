"""
Release Retention.

Decides which deployed releases to keep for every project and environment.
"""

__version__ = "0.1.0"
