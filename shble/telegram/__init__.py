"""Telegram front end: rule commands in, rendered tables out."""
