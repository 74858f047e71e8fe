"""Utility modules for imgconv."""
