"""Sync Jira project issues into iteration board files."""

__version__ = "0.1.0"
