# lively_icons/__init__.py
"""Lively Icons API package."""
