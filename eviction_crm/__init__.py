"""Proactive Eviction CRM operational core."""
