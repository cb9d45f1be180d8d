"""
ORM models for the stock domain: catalog (categories, locations, products,
attributes, price history), inventory movements, todos and identity.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .security import (  # noqa: F401
    User,
    Role,
    UserRole,
    RoleClaim,
    UserClaim,
)
from .catalog import (  # noqa: F401
    Category,
    Location,
    Product,
    ProductAttribute,
    ProductPrice,
)
from .inventory import (  # noqa: F401
    StockMovement,
    StockMovementType,
)
from .todo import (  # noqa: F401
    TodoItem,
    TodoStatus,
    TodoPriority,
)
