"""Logging system for rssok."""
