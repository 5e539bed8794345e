"""Command-line interface for Chatdeck."""
