"""Homemates rental marketplace API."""
