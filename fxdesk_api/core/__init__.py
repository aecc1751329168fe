"""
Core application utilities.

This package provides:
- Application-level settings (separate from DB settings)
- Structured logging with correlation/tenant context
- Domain exceptions mapped to the API error envelope
- JWT/password helpers and FastAPI dependencies (tenant, session, membership)
"""
