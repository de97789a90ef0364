"""Backup document checks performed before any restore."""
