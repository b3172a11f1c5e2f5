"""Database exceptions."""


class DatabaseError(Exception):
    """Base exception for database operations."""
    pass


class DatabaseSchemaError(DatabaseError):
    """Raised when schema loading or migration fails."""
    pass


class PersistenceError(DatabaseError):
    """Raised when committed marketplace state cannot be flushed or loaded."""
    pass
