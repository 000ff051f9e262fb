"""Two-way calendar sync for tasksync.

Kept import-free: the provider client imports `tasksync.sync.errors`, and the
orchestrator imports the provider client.
"""
