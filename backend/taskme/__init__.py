"""TaskMe backend: personal task management with sharing, chat and push reminders."""

__version__ = "0.1.0"
