"""Structural validators for documentation trees."""

from .mirror import TreeMirrorValidator

__all__ = ["TreeMirrorValidator"]
