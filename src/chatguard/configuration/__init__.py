"""
Configuration management for chatguard.

- **app_configuration.py**: YAML configuration loader guarded by fcntl locks.
  Falls back to an empty mapping on a missing or malformed file.

- **chat_limits.py**: Typed accessors for the per-deployment limit set
  (message length, flood ceiling, cooldown, spam threshold and penalty,
  username rules, notification lifetime, profanity denylist).
"""
