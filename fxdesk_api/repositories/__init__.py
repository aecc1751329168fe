"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area. Tenant-scoped
repositories assume the AsyncSession has tenant context configured (see
fxdesk_api.core.deps.get_tenant_session); UserRepository works on global tables.
"""
