"""
Collaborator boundary for chatguard.

- **interfaces.py**: ``AppendLog``, ``LocalKV`` and ``Clock`` protocols and
  ``StoreError``.

- **memory_store.py**: In-process ``AppendLog`` with push keys, server
  timestamps, change subscriptions and an offline switch.

- **local_kv.py**: In-memory and JSON-file ``LocalKV`` implementations.
"""
