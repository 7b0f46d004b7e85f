"""tasksync: optimistic task list client synchronized with a remote REST store."""

__version__ = "0.1.0"
