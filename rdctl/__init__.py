"""Command-line control plane for a desktop virtualization manager."""

__version__ = '0.1.0'
