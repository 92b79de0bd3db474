"""Orchestration helpers used by table-building callers."""
