"""
API route modules.

This package contains subrouters for:
- Auth, Users, Memberships (members and invitations), Organizations (incl. the identity provider webhook)
- Repositories, Currencies, Customers
- Sessions, Orders (quotes and breakdowns), Transfers (float transfers and swaps), Notes
- Reports (CSV/XLSX/PDF exports)

Routers are included from fxdesk_api.api.main (under the /api/v1 prefix).
"""
