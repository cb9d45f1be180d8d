"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area: identity,
catalog (categories, locations, products, attributes, prices), stock movements
and todos.
"""
