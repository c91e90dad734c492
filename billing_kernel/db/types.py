"""
Module: billing_kernel.db.types
Responsibility: Annotated type aliases for billing columns.  Centralizes
    precision so that every model uses identical definitions.
Architecture position: Kernel > DB.  MUST NOT import from models/, domain/
    or selectors/.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Integer, Numeric, String

# Prices and payment values.  Yen amounts are whole numbers, but the column
# keeps two places so that other currencies fit without a migration.
Price = Annotated[Decimal, Numeric(14, 2)]

# Integer surrogate keys.  Integer rather than BigInteger so SQLite
# autoincrement works in tests.
IntKey = Annotated[int, Integer]

# Short status / type codes
ShortCode = Annotated[str, String(32)]

# Display names
Name = Annotated[str, String(255)]
