"""CLI package exports for top-level command entry points."""

from __future__ import annotations

from .main import RDCtlModalCLI, main

__all__ = ['RDCtlModalCLI', 'main']
