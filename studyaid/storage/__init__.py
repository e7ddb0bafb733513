from .database import Database, StorageError, SCHEMA, get_database

__all__ = ['Database', 'StorageError', 'SCHEMA', 'get_database']
