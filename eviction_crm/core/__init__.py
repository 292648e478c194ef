"""Configuration, errors, recovery and admin auth."""
