"""Command line interface for imgconv."""
