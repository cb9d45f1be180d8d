"""
Core application utilities for settings, security and FastAPI dependencies.

This package provides:
- Application-level settings (separate from DB settings)
- JWT and password helpers
- Dependency helpers (current user, role and permission checks)
- Domain error types mapped to HTTP responses
- Logging configuration with correlation/user context
"""
