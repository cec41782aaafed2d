"""Venue CRM lead capture and social media interaction sync."""

__version__ = "1.0.0"
