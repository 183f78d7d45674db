"""
Tests para el StockLedger
"""

import pytest
from uuid import uuid4
from sqlalchemy.orm import Session

from invoice_marshal.common.exceptions import InsufficientStock, VariationNotFound
from invoice_marshal.modules.inventory.service import StockLedger


class TestAvailability:

    def test_product_availability(self, db_session: Session, sample_product):
        assert StockLedger(db_session).available(sample_product) == 5

    def test_variation_availability(self, db_session: Session, sample_product, sample_variation):
        assert StockLedger(db_session).available(sample_product, sample_variation.id) == 3

    def test_untracked_product_has_no_limit(self, db_session: Session, sample_product):
        sample_product.track_stock = False
        db_session.commit()

        ledger = StockLedger(db_session)
        assert ledger.available(sample_product) is None
        ledger.reserve(sample_product, None, 1000)

    def test_unknown_variation(self, db_session: Session, sample_product, sample_variation):
        with pytest.raises(VariationNotFound):
            StockLedger(db_session).available(sample_product, uuid4())


class TestReserve:

    def test_reserve_within_stock(self, db_session: Session, sample_product):
        StockLedger(db_session).reserve(sample_product, None, 5)

    def test_reserve_beyond_stock(self, db_session: Session, sample_product):
        with pytest.raises(InsufficientStock) as exc:
            StockLedger(db_session).reserve(sample_product, None, 6)

        assert exc.value.product_name == "Widget"
        assert exc.value.available == 5
        assert exc.value.requested == 6

    def test_reserve_counts_already_committed(self, db_session: Session, sample_product):
        sample_product.stock_qty = 2
        db_session.commit()

        ledger = StockLedger(db_session)
        ledger.reserve(sample_product, None, 4, already_committed=3)
        with pytest.raises(InsufficientStock) as exc:
            ledger.reserve(sample_product, None, 6, already_committed=3)
        assert exc.value.available == 5


class TestMutations:

    def test_decrement_and_restore(self, db_session: Session, sample_product):
        ledger = StockLedger(db_session)
        ledger.decrement(sample_product, None, 3)
        db_session.commit()
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 2

        ledger.restore(sample_product, None, 3)
        db_session.commit()
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 5

    def test_decrement_never_goes_negative(self, db_session: Session, sample_product):
        with pytest.raises(InsufficientStock) as exc:
            StockLedger(db_session).decrement(sample_product, None, 6)

        assert exc.value.available == 5
        db_session.rollback()
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 5

    def test_restore_then_reserve_full_amount(self, db_session: Session, sample_product):
        """Devolver y volver a tomar la misma cantidad deja el stock igual"""
        ledger = StockLedger(db_session)
        ledger.decrement(sample_product, None, 5)
        db_session.commit()

        ledger.restore(sample_product, None, 5)
        ledger.reserve(sample_product, None, 5)
        ledger.decrement(sample_product, None, 5)
        db_session.commit()
        db_session.refresh(sample_product)

        assert sample_product.stock_qty == 0

    def test_variation_stock_is_separate(self, db_session: Session, sample_product, sample_variation):
        ledger = StockLedger(db_session)
        ledger.decrement(sample_product, sample_variation.id, 2)
        db_session.commit()
        db_session.refresh(sample_variation)
        db_session.refresh(sample_product)

        assert sample_variation.stock_qty == 1
        assert sample_product.stock_qty == 5

    def test_restore_missing_variation_is_skipped(self, db_session: Session, sample_product, sample_variation):
        StockLedger(db_session).restore(sample_product, uuid4(), 2)
        db_session.commit()
        db_session.refresh(sample_variation)
        assert sample_variation.stock_qty == 3

    def test_untracked_product_is_not_touched(self, db_session: Session, sample_product):
        sample_product.track_stock = False
        db_session.commit()

        StockLedger(db_session).decrement(sample_product, None, 50)
        db_session.commit()
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 5

    def test_set_quantity(self, db_session: Session, sample_product, sample_variation):
        ledger = StockLedger(db_session)
        ledger.set_quantity(sample_product, None, 12)
        ledger.set_quantity(sample_product, sample_variation.id, 7)
        db_session.commit()
        db_session.refresh(sample_product)
        db_session.refresh(sample_variation)

        assert sample_product.stock_qty == 12
        assert sample_variation.stock_qty == 7
