"""Utility helpers for the reconciliation engine."""
