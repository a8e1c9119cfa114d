"""
Persistence adapters.

UserRepository owns the users table; RefreshTokenStore exclusively owns the
refresh_tokens table. Services depend on these instead of touching sessions.
"""
