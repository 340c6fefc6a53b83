"""Proxy appliance first-boot provisioner (attended, state-driven).

Core design goals:
- Fail fast before anything irreversible
- Idempotent configuration steps
- One-way security lockdown, applied last
- Secrets shown once, never logged
- Centralized logging on the data partition
"""

__all__ = []
