"""Upstream registry access."""
