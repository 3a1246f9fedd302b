"""Shared helpers for focusboard."""
