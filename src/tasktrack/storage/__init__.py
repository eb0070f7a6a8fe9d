"""
Persistence adapters.

Components:
- records.py: entity <-> flat record codec
- sqlite_store.py: SQLite-backed RecordStore
"""
