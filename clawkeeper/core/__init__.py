"""Shared types, errors and the audit log."""
