"""
High-level use cases for the Kairo API.

Each service module orchestrates repositories and core helpers to implement
the business rules (register, login, refresh rotation, logout). Routers call
these services instead of manipulating database sessions directly.
"""
