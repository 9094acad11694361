"""BoardHub: collaborative Kanban boards."""

__version__ = "0.1.0"
