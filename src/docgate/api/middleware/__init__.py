"""API middleware package.

Cross-cutting concerns (request correlation, error rendering) live here so
the protocol adapters stay focused on operation mapping.
"""
