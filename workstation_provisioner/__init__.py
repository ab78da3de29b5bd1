"""Workstation provisioner (idempotent, fallback-aware step runner).

Core design goals:
- Ordered, idempotent steps driven by a YAML catalog
- Check before acting; already-satisfied steps are skipped, never dropped
- One outcome per executed step, collected into a run report
- Logging that can never abort a run once it has started
"""

__all__ = []
