"""
Task subsystem.

Components:
- task_models.py: data structures (Task, TaskDraft, Priority, PendingOp)
- task_cache.py: SQLite-backed snapshot of the last confirmed list
- task_gateway.py: HTTP adapter for the remote store
- task_engine.py: reconciliation engine (optimistic updates, rollback, re-sync)
- task_projection.py: pure ordering/filtering for display
"""
