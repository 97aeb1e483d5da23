"""Configuration loading for Release Retention."""
