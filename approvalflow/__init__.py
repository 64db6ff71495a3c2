"""Approval workflow engine for compliance artifacts."""

__version__ = "0.1.0"
