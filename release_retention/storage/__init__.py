"""
Storage layer for Release Retention.

Record models and the data providers that supply them.
"""
