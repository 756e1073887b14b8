"""
Output Handler Module for the Invoice Extraction Pipeline.

This module provides functionality for:
    - Record persistence behind the PersistenceGateway interface
    - SQLite and in-memory gateway implementations
    - Raw upload storage for retries

Author: ML Engineering Team
"""

from .gateway import PersistenceGateway
from .memory_gateway import InMemoryPersistenceGateway
from .database_handler import SqlitePersistenceGateway
from .file_store import FileStore, LocalFileStore, StoredFile

__all__ = [
    'PersistenceGateway',
    'InMemoryPersistenceGateway',
    'SqlitePersistenceGateway',
    'FileStore',
    'LocalFileStore',
    'StoredFile',
]
