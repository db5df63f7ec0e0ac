"""Configuration and credential services."""
