"""
Message moderation and log reconciliation.

- **profanity_filter.py**: Whole-word, case-insensitive masking of denylisted
  terms with length-preserving asterisks.

- **username_validator.py**: Username format rules and the change quota.

- **rate_limiter.py**: Per-sender cooldown plus the spam escalation state
  machine (idle, cooling, warned, muted) with lazy time-based decay.

- **message_log_reconciler.py**: Projects raw keyed snapshots into messages
  ordered by server timestamp and key.

- **moderation_engine.py**: Orchestrates the components above into the
  submission pipeline, the remote-update projection and the administrative
  operations.
"""
