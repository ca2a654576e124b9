"""Utility modules for refnotes."""
