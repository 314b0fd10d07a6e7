"""Discover GitHub repositories, detect installable components and reconcile install state."""

__version__ = "0.1.0"
