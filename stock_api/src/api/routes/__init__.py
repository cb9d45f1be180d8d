"""
API route modules.

This package contains subrouters for:
- Auth: login, token refresh, logout, password changes and current user
- Users / Roles: administration, claims and the permission catalogue
- Categories, Locations, Products, Product Attributes: catalog maintenance
- Stock Movements: the inbound/outbound ledger
- Todos, Dashboard, Chat, Reports

Routers are included from src.api.main (under the /api/v1 prefix).
"""
