"""SQLite persistence for tasks and plans."""
