"""Shared helpers for logging, telemetry, deduplication and notifications."""
