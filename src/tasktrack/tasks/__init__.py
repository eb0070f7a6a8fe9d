"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TimeLog, Category, Tag)
- task_store.py: in-memory authoritative store + record store mirroring
- time_tracking.py: tracking state machine (idle / tracking one task)
- time_ticker.py: asyncio loop refreshing the live duration every second
- task_api.py: small high-level helpers used by the connectors
"""
