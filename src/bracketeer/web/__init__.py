"""Bracketeer web API."""
