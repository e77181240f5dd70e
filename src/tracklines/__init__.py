"""Personal time tracker with pausable work sessions."""

__version__ = "1.0.0"
