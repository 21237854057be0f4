"""ORM models.

Importing this package registers every mapper on ``Base.metadata``.
"""

from mehustaja.models.customer import Customer
from mehustaja.models.order import Order, OrderStatus
from mehustaja.models.crate import Crate
from mehustaja.models.pallet import Pallet, PalletCrateMapping, PalletStatus
from mehustaja.models.shelf import Shelf, ShelfStatus

__all__ = [
    "Customer",
    "Order", "OrderStatus",
    "Crate",
    "Pallet", "PalletCrateMapping", "PalletStatus",
    "Shelf", "ShelfStatus",
]
