"""
Shareable Notes - a personal note manager with password-protected notes.
This package implements the note persistence and confidentiality core:
the note model, authenticated password-based encryption of note content,
and a write-through repository that stores the whole collection as a
single blob in a local key/value medium.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("shareable-notes")
except PackageNotFoundError:
    __version__ = "0.1.0"
