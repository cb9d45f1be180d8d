"""
Public Pydantic schemas used by FastAPI routes, services, and tests.

Schemas are grouped by domain module (catalog, inventory, todo, dashboard,
chat, reports, auth) plus common standard responses.
"""

from .common import MessageResponse  # noqa: F401
