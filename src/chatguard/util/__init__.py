"""
Utility modules for chatguard.

- **logger.py**: Centralized logging configuration with colored console output
  through prompt_toolkit and a per-session rotating log file.

- **clock.py**: Wall-clock and manually advanced ``Clock`` implementations.

- **constants.py**: Store paths, storage keys and default limits.
"""
