"""
Diagnostics Package
===================

On-demand integration check of the tunnel: backend health plus a synthetic
terminal command, reported as a ``DiagnosticReport``.
"""

from .probe import DiagnosticProbe

__all__ = ["DiagnosticProbe"]
