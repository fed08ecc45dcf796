"""Persistence layer for the UI reference catalog: models and engine setup."""
