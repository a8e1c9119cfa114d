"""
Core utilities shared across the Kairo API.

This package hosts configuration, logging setup, password hashing, token
encoding and the in-process rate limiter. Services depend on these primitives
instead of importing directly from FastAPI or the storage layer.
"""
