"""Operational services and their wiring."""
