"""shble: run shell commands and view their output as filtered tables."""

__version__ = "0.1.0"
