"""Classroom services: courses, assignments and submissions across three services."""

__version__ = "0.1.0"
