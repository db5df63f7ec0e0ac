"""Fetch, reconcile and group Jira issues."""
