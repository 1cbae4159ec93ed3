"""taskloop — in-process periodic task runner."""
