"""Data models for Shareable Notes."""
