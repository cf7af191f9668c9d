"""Clients for the upstream issue tracker.

These modules fetch ticket and development data from Jira and normalize it
into the report schemas.
"""
