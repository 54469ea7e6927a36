"""Contextual emoji reactions for an automated WhatsApp chat agent."""

__version__ = "0.1.0"
