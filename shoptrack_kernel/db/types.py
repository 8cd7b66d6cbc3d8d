"""
Module: shoptrack_kernel.db.types
Responsibility: Column type definitions shared by every ORM model, so prices,
    names and identifiers use identical definitions.
Architecture position: Kernel > DB.  May be imported by models/.  MUST NOT
    import from models/ or any outer layer.

Invariants enforced:
    CRITICAL: No floats for money.  Every price and total column is
           Numeric(38, 9) mapped to Decimal.
"""

from sqlalchemy import Numeric, String


# Monetary amount with high precision
# 38 digits total, 9 decimal places
Money = Numeric(38, 9)

# Opaque identifiers (tenant ids come from the auth collaborator)
Identifier = String(64)

# Short labels (product kind, payment mode)
ShortCode = String(50)

# Free text (product names and categories)
LongText = String(400)
