"""Reconciliation decision logic for Flux HelmRelease resources.

This library decides which Helm action (install, upgrade, test, rollback or
uninstall) a HelmRelease needs next and records the outcome of that action
on the HelmRelease status. It never talks to a cluster or runs Helm itself.
"""

__all__ = [
    "conditions",
    "status",
    "release",
    "decision",
    "exceptions",
    # Note this is exposed for CLI documentation, not to be used as a library
    "tool",
]
