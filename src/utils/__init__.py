"""
Generic utility functions shared across modules.

Includes clock abstractions and date validation, share/value arithmetic,
and logging setup.
"""
