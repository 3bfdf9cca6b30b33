"""Recruiting marketplace workflow engine."""
