"""
Stock ledger for catalog products and their variations.

All stock mutations made on behalf of invoices go through StockLedger and run
inside the caller's session; the caller commits or rolls back.
"""
from typing import Optional
from uuid import UUID
import logging
from sqlalchemy import update
from sqlalchemy.orm import Session

from invoice_marshal.common.exceptions import InsufficientStock, VariationNotFound
from invoice_marshal.modules.products.models import Product, ProductVariation

logger = logging.getLogger(__name__)


class StockLedger:
    """Available quantity per product / variation."""

    def __init__(self, db: Session):
        self.db = db

    def _variation(self, product: Product, variation_id: UUID) -> ProductVariation:
        for variation in product.variations:
            if variation.id == variation_id:
                return variation
        raise VariationNotFound()

    def available(self, product: Product, variation_id: Optional[UUID] = None) -> Optional[int]:
        """
        Current stock for the product, or for the variation when one is given.
        Returns None when the product does not track stock.
        """
        if not product.track_stock:
            return None
        if variation_id:
            return self._variation(product, variation_id).stock_qty
        return product.stock_qty

    def reserve(
        self,
        product: Product,
        variation_id: Optional[UUID],
        qty: int,
        already_committed: int = 0
    ) -> None:
        """
        Check that qty units can be taken. already_committed counts units the
        same invoice holds and will give back before decrementing (edits).
        Nothing is written.
        """
        current = self.available(product, variation_id)
        if current is None:
            return
        if current + already_committed < qty:
            raise InsufficientStock(product.name, current + already_committed, qty)

    def decrement(self, product: Product, variation_id: Optional[UUID], qty: int) -> None:
        """
        Take qty units with a conditional UPDATE; zero matched rows means a
        concurrent writer got there first.
        """
        if not product.track_stock:
            return

        target = self._target(product, variation_id)
        model = type(target)
        result = self.db.execute(
            update(model)
            .where(model.id == target.id, model.stock_qty >= qty)
            .values(stock_qty=model.stock_qty - qty)
            .execution_options(synchronize_session=False)
        )
        self.db.expire(target, ["stock_qty"])
        if result.rowcount == 0:
            raise InsufficientStock(product.name, target.stock_qty, qty)

        logger.info(f"Stock decremented: product={product.id} variation={variation_id} qty={qty}")

    def restore(self, product: Product, variation_id: Optional[UUID], qty: int) -> None:
        """Give back qty units; a variation that no longer exists is skipped."""
        if not product.track_stock:
            return

        try:
            target = self._target(product, variation_id)
        except VariationNotFound:
            logger.warning(f"Variation {variation_id} no longer exists, stock not restored")
            return

        model = type(target)
        self.db.execute(
            update(model)
            .where(model.id == target.id)
            .values(stock_qty=model.stock_qty + qty)
            .execution_options(synchronize_session=False)
        )
        self.db.expire(target, ["stock_qty"])
        logger.info(f"Stock restored: product={product.id} variation={variation_id} qty={qty}")

    def set_quantity(self, product: Product, variation_id: Optional[UUID], qty: int) -> None:
        """Manual adjustment to an absolute quantity."""
        if variation_id:
            self._variation(product, variation_id).stock_qty = qty
        else:
            product.stock_qty = qty
        logger.info(f"Stock set: product={product.id} variation={variation_id} qty={qty}")

    def _target(self, product: Product, variation_id: Optional[UUID]):
        if variation_id:
            return self._variation(product, variation_id)
        return product
