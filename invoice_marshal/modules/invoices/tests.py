"""
Tests para el módulo de Facturas

Cubren:
- Motor de estados (compute_status, payment_progress)
- Ciclo de vida: creación, edición, borrado, marcado manual
- Pagos parciales y sobrepagos
- Integración con inventario (descuento, devolución, stock insuficiente)
- Aislamiento de notificaciones y propietario
- Job de refresco de estados, dashboard y PDF
- Endpoints HTTP
"""

import json
import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from fastapi import HTTPException
from sqlalchemy.orm import Session

from invoice_marshal.common.exceptions import (
    InsufficientStock, InvoiceNotFound, MalformedPayload, ProductNotFound,
    ValidationError, VariationNotFound
)
from invoice_marshal.modules.invoices.models import Invoice, InvoiceItem, InvoiceStatus, Payment
from invoice_marshal.modules.invoices.schemas import InvoiceCreate, InvoiceUpdate, PaymentCreate, parse_items
from invoice_marshal.modules.invoices.service import InvoiceService
from invoice_marshal.modules.invoices.status import compute_status, payment_progress
from invoice_marshal.modules.invoices.pdf import InvoiceSnapshot, render_invoice_pdf
from invoice_marshal.modules.products.models import Product
from invoice_marshal.modules.products.service import ProductService


FIXED_NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
ISSUE_DATE = "2024-06-01"  # vence el 2024-07-01 con 30 días de plazo


def make_service(db, notifier=None, now=FIXED_NOW):
    return InvoiceService(db, notifier=notifier, clock=lambda: now)


def product_item(product, quantity, rate="20.00", variation=None):
    item = {
        "description": product.name,
        "quantity": quantity,
        "rate": rate,
        "product_id": str(product.id),
    }
    if variation is not None:
        item["variation_id"] = str(variation.id)
    return item


@pytest.fixture
def create_invoice(db_session, sample_user, invoice_payload):
    """Crea una factura vía servicio con fecha fija"""
    def create(items=None, owner=None, notifier=None, **overrides):
        overrides.setdefault("issue_date", ISSUE_DATE)
        data = InvoiceCreate(**invoice_payload(items=items, **overrides))
        return make_service(db_session, notifier).create_invoice(data, (owner or sample_user).id)
    return create


# ===== TESTS DEL MOTOR DE ESTADOS =====

class TestComputeStatus:
    """Reglas de derivación del estado"""

    issue = date(2024, 6, 1)

    @pytest.mark.parametrize("total,paid", [
        ("100", "100"), ("100", "150"), ("0.01", "0.01"), ("250.50", "300")
    ])
    def test_paid_when_fully_paid_regardless_of_due_date(self, total, paid):
        long_after_due = datetime(2030, 1, 1, tzinfo=timezone.utc)
        assert compute_status(Decimal(total), Decimal(paid), self.issue, 0, long_after_due) == InvoiceStatus.PAID
        assert compute_status(Decimal(total), Decimal(paid), self.issue, 30, FIXED_NOW) == InvoiceStatus.PAID

    @pytest.mark.parametrize("paid", ["0.01", "40", "99.99"])
    def test_partial_payment_suppresses_overdue(self, paid):
        long_after_due = datetime(2030, 1, 1, tzinfo=timezone.utc)
        status = compute_status(Decimal("100"), Decimal(paid), self.issue, 5, long_after_due)
        assert status == InvoiceStatus.PARTIALLY_PAID

    @pytest.mark.parametrize("offset,days_after_issue", [(0, 1), (5, 6), (30, 31), (30, 365)])
    def test_overdue_when_unpaid_after_due_date(self, offset, days_after_issue):
        now = datetime(2024, 6, 1, 0, 0, 1, tzinfo=timezone.utc) + timedelta(days=days_after_issue - 1)
        assert compute_status(Decimal("100"), Decimal("0"), self.issue, offset, now) == InvoiceStatus.OVERDUE

    @pytest.mark.parametrize("offset,days_after_issue", [(0, 0), (5, 5), (30, 10), (30, 30)])
    def test_pending_when_unpaid_before_due_date(self, offset, days_after_issue):
        # Exactamente en la medianoche del vencimiento todavía no está vencida
        now = datetime(2024, 6, 1, tzinfo=timezone.utc) + timedelta(days=days_after_issue)
        assert compute_status(Decimal("100"), Decimal("0"), self.issue, offset, now) == InvoiceStatus.PENDING

    def test_emailed_is_never_derived(self):
        for paid in ("0", "50", "100"):
            for now in (FIXED_NOW, datetime(2030, 1, 1, tzinfo=timezone.utc)):
                assert compute_status(Decimal("100"), Decimal(paid), self.issue, 30, now) != InvoiceStatus.EMAILED


class TestPaymentProgress:

    def test_progress_percentage(self):
        assert payment_progress(Decimal("200"), Decimal("50")) == Decimal("25.00")
        assert payment_progress(Decimal("100"), Decimal("0")) == Decimal("0.00")

    def test_progress_is_capped_at_100(self):
        assert payment_progress(Decimal("100"), Decimal("150")) == Decimal("100")

    def test_zero_total_has_zero_progress(self):
        assert payment_progress(Decimal("0"), Decimal("0")) == Decimal("0")


# ===== TESTS DE ITEMS =====

class TestParseItems:

    def test_accepts_list(self):
        items = parse_items(InvoiceCreate(**self._payload([{"description": "A", "quantity": 1, "rate": "5"}])).items)
        assert len(items) == 1
        assert items[0].rate == Decimal("5")

    def test_accepts_json_string(self):
        raw = json.dumps([{"description": "A", "quantity": 2, "rate": "7.5"}])
        items = parse_items(raw)
        assert items[0].quantity == 2

    def test_unparsable_string_is_malformed(self):
        with pytest.raises(MalformedPayload) as exc:
            parse_items("[{description: oops")
        assert exc.value.status_code == 400

    def test_string_with_invalid_items_is_malformed(self):
        with pytest.raises(MalformedPayload):
            parse_items(json.dumps([{"description": "A", "quantity": 0, "rate": "1"}]))

    def test_empty_list_is_validation_error(self):
        with pytest.raises(ValidationError) as exc:
            parse_items("[]")
        assert exc.value.status_code == 422
        assert exc.value.detail[0]["loc"] == ["items"]

    @staticmethod
    def _payload(items):
        return {
            "invoice_name": "X", "invoice_number": 1, "due_date_offset_days": 0,
            "from_name": "A", "from_email": "a@example.com", "from_address": "A st",
            "client_name": "B", "client_email": "b@example.com", "client_address": "B st",
            "items": items,
        }


# ===== TESTS DEL SERVICIO =====

class TestInvoiceCreation:

    def test_create_invoice_computes_total(self, db_session: Session, create_invoice):
        invoice = create_invoice(items=[
            {"description": "Design", "quantity": 2, "rate": "50.00"},
            {"description": "Hosting", "quantity": 3, "rate": "9.99"},
        ])

        assert invoice.id is not None
        assert invoice.total == Decimal("129.97")
        assert invoice.total_paid == Decimal("0")
        assert invoice.status == InvoiceStatus.PENDING
        assert [item.description for item in invoice.items] == ["Design", "Hosting"]

    def test_client_total_is_ignored(self, create_invoice):
        invoice = create_invoice(total="999.00")
        assert invoice.total == Decimal("100.00")

    def test_product_item_decrements_stock(self, db_session: Session, create_invoice, sample_product):
        """Escenario B: 5 en stock, se venden 5, el siguiente falla"""
        create_invoice(items=[product_item(sample_product, 5)])
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 0

        with pytest.raises(InsufficientStock) as exc:
            create_invoice(items=[product_item(sample_product, 1)], invoice_number=2)

        assert exc.value.status_code == 409
        assert exc.value.detail["available"] == 0
        assert exc.value.detail["requested"] == 1
        assert db_session.query(Invoice).count() == 1
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 0

    def test_variation_stock_is_used_when_selected(self, db_session: Session, create_invoice, sample_product, sample_variation):
        create_invoice(items=[product_item(sample_product, 3, variation=sample_variation)])
        db_session.refresh(sample_variation)
        db_session.refresh(sample_product)

        assert sample_variation.stock_qty == 0
        assert sample_product.stock_qty == 5

    def test_untracked_product_does_not_touch_stock(self, db_session: Session, create_invoice, sample_product):
        sample_product.track_stock = False
        sample_product.stock_qty = 0
        db_session.commit()

        invoice = create_invoice(items=[product_item(sample_product, 10)])
        db_session.refresh(sample_product)

        assert invoice.total == Decimal("200.00")
        assert sample_product.stock_qty == 0

    def test_duplicate_lines_cannot_oversell(self, db_session: Session, create_invoice, sample_product):
        with pytest.raises(InsufficientStock):
            create_invoice(items=[product_item(sample_product, 3), product_item(sample_product, 3)])

        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 5
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0

    def test_foreign_product_is_not_found(self, db_session: Session, create_invoice, other_user):
        foreign = Product(user_id=other_user.id, name="Foreign", base_price=Decimal("1"), track_stock=True, stock_qty=10)
        db_session.add(foreign)
        db_session.commit()

        with pytest.raises(ProductNotFound):
            create_invoice(items=[product_item(foreign, 1)])

    def test_unknown_variation_is_not_found(self, create_invoice, sample_product, sample_variation):
        item = product_item(sample_product, 1)
        item["variation_id"] = "00000000-0000-0000-0000-000000000001"
        with pytest.raises(VariationNotFound):
            create_invoice(items=[item])

    def test_malformed_items_string(self, db_session: Session, create_invoice):
        with pytest.raises(MalformedPayload):
            create_invoice(items="not-json")
        assert db_session.query(Invoice).count() == 0

    def test_items_as_json_string(self, create_invoice):
        invoice = create_invoice(items=json.dumps([{"description": "Audit", "quantity": 1, "rate": "300"}]))
        assert invoice.total == Decimal("300.00")


class TestInvoiceNotifications:

    def test_created_email_is_sent_after_commit(self, create_invoice, notifier):
        invoice = create_invoice(notifier=notifier)

        assert len(notifier.sent) == 1
        sent = notifier.sent[0]
        assert sent["kind"] == "created"
        assert sent["recipient"] == "charles@example.com"
        assert sent["variables"]["total_amount"] == "$100.00"
        assert sent["variables"]["due_date"] == "July 01, 2024"
        assert sent["variables"]["invoice_link"].endswith(f"/invoices/{invoice.id}/pdf")

    def test_company_identity_overrides_sender(self, create_invoice, notifier, sample_company):
        create_invoice(notifier=notifier)
        variables = notifier.sent[0]["variables"]
        assert variables["from_name"] == "Lovelace Consulting"
        assert variables["from_email"] == "billing@lovelace.example.com"

    def test_notifier_failure_does_not_undo_invoice(self, db_session: Session, create_invoice, failing_notifier):
        invoice = create_invoice(notifier=failing_notifier)

        assert db_session.query(Invoice).filter(Invoice.id == invoice.id).count() == 1

    def test_eur_amounts_are_formatted(self, create_invoice, notifier):
        create_invoice(notifier=notifier, currency="EUR", items=[
            {"description": "Retainer", "quantity": 1, "rate": "1234.5"}
        ])
        assert notifier.sent[0]["variables"]["total_amount"] == "€1,234.50"


class TestInvoiceEdit:

    def _update(self, invoice_payload, items, **overrides):
        overrides.setdefault("issue_date", ISSUE_DATE)
        return InvoiceUpdate(**invoice_payload(items=items, **overrides))

    def test_edit_counts_existing_quantity_as_available(
        self, db_session: Session, create_invoice, invoice_payload, sample_product, sample_user
    ):
        """Escenario C: 3 tomadas, quedan 2, se edita a 4"""
        invoice = create_invoice(items=[product_item(sample_product, 3)])
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 2

        edited = make_service(db_session).edit_invoice(
            invoice.id, self._update(invoice_payload, [product_item(sample_product, 4)]), sample_user.id
        )
        db_session.refresh(sample_product)

        assert edited.total == Decimal("80.00")
        assert sample_product.stock_qty == 1
        assert len(edited.items) == 1
        assert edited.items[0].quantity == 4

    def test_edit_beyond_available_fails_and_changes_nothing(
        self, db_session: Session, create_invoice, invoice_payload, sample_product, sample_user
    ):
        invoice = create_invoice(items=[product_item(sample_product, 3)])

        with pytest.raises(InsufficientStock) as exc:
            make_service(db_session).edit_invoice(
                invoice.id, self._update(invoice_payload, [product_item(sample_product, 8)]), sample_user.id
            )

        assert exc.value.detail["available"] == 5
        assert exc.value.detail["requested"] == 8
        db_session.refresh(sample_product)
        db_session.refresh(invoice)
        assert sample_product.stock_qty == 2
        assert invoice.items[0].quantity == 3

    def test_edit_to_other_product_restores_old_stock(
        self, db_session: Session, create_invoice, invoice_payload, sample_product, sample_user
    ):
        gadget = Product(user_id=sample_user.id, name="Gadget", base_price=Decimal("5"), track_stock=True, stock_qty=4)
        db_session.add(gadget)
        db_session.commit()

        invoice = create_invoice(items=[product_item(sample_product, 3)])
        make_service(db_session).edit_invoice(
            invoice.id, self._update(invoice_payload, [product_item(gadget, 4, rate="5")]), sample_user.id
        )
        db_session.refresh(sample_product)
        db_session.refresh(gadget)

        assert sample_product.stock_qty == 5
        assert gadget.stock_qty == 0

    def test_edit_replaces_header_and_items(self, db_session: Session, create_invoice, invoice_payload, sample_user):
        invoice = create_invoice()
        edited = make_service(db_session).edit_invoice(
            invoice.id,
            self._update(
                invoice_payload,
                [{"description": "Copywriting", "quantity": 1, "rate": "80"},
                 {"description": "Photos", "quantity": 4, "rate": "10"}],
                client_name="Ada's Client",
                invoice_name="Rebrand"
            ),
            sample_user.id
        )

        assert edited.client_name == "Ada's Client"
        assert edited.invoice_name == "Rebrand"
        assert edited.total == Decimal("120.00")
        assert [i.description for i in edited.items] == ["Copywriting", "Photos"]
        assert db_session.query(InvoiceItem).count() == 2

    def test_edit_recomputes_derived_status(self, db_session: Session, create_invoice, invoice_payload, sample_user):
        invoice = create_invoice(items=[{"description": "Work", "quantity": 1, "rate": "100"}])
        make_service(db_session).record_payment(invoice.id, PaymentCreate(amount=Decimal("60")), sample_user.id)

        edited = make_service(db_session).edit_invoice(
            invoice.id,
            self._update(invoice_payload, [{"description": "Work", "quantity": 1, "rate": "50"}]),
            sample_user.id
        )

        assert edited.total_paid == Decimal("60.00")
        assert edited.status == InvoiceStatus.PAID

    def test_edit_keeps_manual_paid_and_emailed(self, db_session: Session, create_invoice, invoice_payload, sample_user):
        service = make_service(db_session)
        paid = create_invoice()
        emailed = create_invoice(invoice_number=2)
        service.mark_as_paid(paid.id, sample_user.id)
        service.mark_as_emailed(emailed.id, sample_user.id)

        items = [{"description": "More work", "quantity": 3, "rate": "100"}]
        assert service.edit_invoice(paid.id, self._update(invoice_payload, items), sample_user.id).status == InvoiceStatus.PAID
        assert service.edit_invoice(
            emailed.id, self._update(invoice_payload, items, invoice_number=2), sample_user.id
        ).status == InvoiceStatus.EMAILED

    def test_edit_sends_updated_email(self, db_session: Session, create_invoice, invoice_payload, sample_user, notifier):
        invoice = create_invoice()
        make_service(db_session, notifier).edit_invoice(
            invoice.id, self._update(invoice_payload, None), sample_user.id
        )
        assert [s["kind"] for s in notifier.sent] == ["updated"]


class TestInvoiceDeletion:

    def test_delete_restores_stock(self, db_session: Session, create_invoice, sample_product, sample_user):
        """Escenario D"""
        invoice = create_invoice(items=[product_item(sample_product, 5)])
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 0

        make_service(db_session).delete_invoice(invoice.id, sample_user.id)
        db_session.refresh(sample_product)

        assert sample_product.stock_qty == 5
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0

    def test_delete_restores_variation_stock(self, db_session: Session, create_invoice, sample_product, sample_variation, sample_user):
        invoice = create_invoice(items=[product_item(sample_product, 2, variation=sample_variation)])
        make_service(db_session).delete_invoice(invoice.id, sample_user.id)
        db_session.refresh(sample_variation)
        assert sample_variation.stock_qty == 3

    def test_delete_removes_payments(self, db_session: Session, create_invoice, sample_user):
        invoice = create_invoice()
        service = make_service(db_session)
        service.record_payment(invoice.id, PaymentCreate(amount=Decimal("10")), sample_user.id)
        service.delete_invoice(invoice.id, sample_user.id)
        assert db_session.query(Payment).count() == 0

    def test_delete_skips_deleted_products(self, db_session: Session, create_invoice, sample_product, sample_user):
        invoice = create_invoice(items=[product_item(sample_product, 2)])
        db_session.delete(sample_product)
        db_session.commit()

        make_service(db_session).delete_invoice(invoice.id, sample_user.id)
        assert db_session.query(Invoice).count() == 0

    def test_delete_after_variation_removed_keeps_product_stock(
        self, db_session: Session, create_invoice, sample_product, sample_variation, sample_user
    ):
        """Las unidades de una variación eliminada no pasan al stock del producto"""
        invoice = create_invoice(items=[product_item(sample_product, 2, variation=sample_variation)])
        ProductService(db_session).delete_variation(sample_variation.id, sample_user.id)

        make_service(db_session).delete_invoice(invoice.id, sample_user.id)
        db_session.refresh(sample_product)

        assert sample_product.stock_qty == 5
        assert db_session.query(Invoice).count() == 0

    def test_edit_after_variation_removed_keeps_product_stock(
        self, db_session: Session, create_invoice, invoice_payload, sample_product, sample_variation, sample_user
    ):
        invoice = create_invoice(items=[product_item(sample_product, 2, variation=sample_variation)])
        item = invoice.items[0]
        ProductService(db_session).delete_variation(sample_variation.id, sample_user.id)

        db_session.refresh(item)
        assert item.variation_id == sample_variation.id

        make_service(db_session).edit_invoice(
            invoice.id,
            InvoiceUpdate(**invoice_payload(items=[product_item(sample_product, 5)], issue_date=ISSUE_DATE)),
            sample_user.id
        )
        db_session.refresh(sample_product)

        assert sample_product.stock_qty == 0

    def test_delete_foreign_invoice_is_not_found(self, db_session: Session, create_invoice, other_user):
        invoice = create_invoice()
        with pytest.raises(InvoiceNotFound):
            make_service(db_session).delete_invoice(invoice.id, other_user.id)
        assert db_session.query(Invoice).count() == 1


class TestPayments:

    def test_partial_then_full_payment(self, db_session: Session, create_invoice, sample_user):
        """Escenario A"""
        invoice = create_invoice(items=[{"description": "Work", "quantity": 1, "rate": "100"}])
        service = make_service(db_session)

        invoice = service.record_payment(invoice.id, PaymentCreate(amount=Decimal("40")), sample_user.id)
        assert invoice.total_paid == Decimal("40.00")
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID

        invoice = service.record_payment(invoice.id, PaymentCreate(amount=Decimal("60")), sample_user.id)
        assert invoice.total_paid == Decimal("100.00")
        assert invoice.status == InvoiceStatus.PAID

    def test_overpayment_is_accepted(self, db_session: Session, create_invoice, sample_user):
        invoice = create_invoice(items=[{"description": "Work", "quantity": 1, "rate": "100"}])
        invoice = make_service(db_session).record_payment(invoice.id, PaymentCreate(amount=Decimal("120")), sample_user.id)

        assert invoice.status == InvoiceStatus.PAID
        assert invoice.total_paid == Decimal("120.00")
        assert invoice.balance_due == Decimal("0")

    def test_partial_payment_on_overdue_invoice(self, db_session: Session, create_invoice, sample_user):
        invoice = create_invoice(issue_date="2024-01-01", due_date_offset_days=10)
        invoice = make_service(db_session).record_payment(invoice.id, PaymentCreate(amount=Decimal("1")), sample_user.id)
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID

    def test_payment_overwrites_emailed(self, db_session: Session, create_invoice, sample_user):
        invoice = create_invoice()
        service = make_service(db_session)
        service.mark_as_emailed(invoice.id, sample_user.id)

        invoice = service.record_payment(invoice.id, PaymentCreate(amount=Decimal("10")), sample_user.id)
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID

    def test_non_positive_amount_is_rejected(self, db_session: Session, create_invoice, sample_user):
        invoice = create_invoice()
        with pytest.raises(ValidationError):
            make_service(db_session).record_payment(
                invoice.id, PaymentCreate.model_construct(amount=Decimal("0"), method=None, notes=None), sample_user.id
            )
        assert db_session.query(Payment).count() == 0

    def test_payment_on_foreign_invoice(self, db_session: Session, create_invoice, other_user):
        invoice = create_invoice()
        with pytest.raises(InvoiceNotFound):
            make_service(db_session).record_payment(invoice.id, PaymentCreate(amount=Decimal("10")), other_user.id)

    def test_payments_are_listed_newest_first(self, db_session: Session, create_invoice, sample_user):
        invoice = create_invoice()
        for day, amount in ((1, "10"), (3, "30"), (2, "20")):
            service = make_service(db_session, now=FIXED_NOW + timedelta(days=day))
            service.record_payment(invoice.id, PaymentCreate(amount=Decimal(amount), method="cash"), sample_user.id)

        payments = make_service(db_session).list_payments(invoice.id, sample_user.id)
        assert [p.amount for p in payments] == [Decimal("30.00"), Decimal("20.00"), Decimal("10.00")]

    def test_payment_history_progress(self, db_session: Session, create_invoice, sample_user):
        invoice = create_invoice(items=[{"description": "Work", "quantity": 1, "rate": "200"}])
        service = make_service(db_session)
        service.record_payment(invoice.id, PaymentCreate(amount=Decimal("50")), sample_user.id)

        history = service.payment_history(invoice.id, sample_user.id)
        assert history.progress == Decimal("25.00")
        assert history.balance_due == Decimal("150.00")
        assert len(history.payments) == 1


class TestManualStatus:

    def test_mark_as_paid_keeps_total_paid(self, db_session: Session, create_invoice, sample_user):
        """Escenario E"""
        invoice = create_invoice(items=[{"description": "Work", "quantity": 1, "rate": "100"}])
        invoice = make_service(db_session).mark_as_paid(invoice.id, sample_user.id)

        assert invoice.status == InvoiceStatus.PAID
        assert invoice.total_paid == Decimal("0")

    def test_send_reminder_marks_emailed(self, db_session: Session, create_invoice, sample_user, notifier):
        invoice = create_invoice()
        invoice = make_service(db_session, notifier).send_reminder(invoice.id, sample_user.id)

        assert invoice.status == InvoiceStatus.EMAILED
        assert notifier.sent[-1]["kind"] == "reminder"

    def test_send_reminder_failure_keeps_status(self, db_session: Session, create_invoice, sample_user, failing_notifier):
        invoice = create_invoice()
        with pytest.raises(HTTPException) as exc:
            make_service(db_session, failing_notifier).send_reminder(invoice.id, sample_user.id)

        assert exc.value.status_code == 502
        db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PENDING


class TestStatusRefresh:

    def test_refresh_marks_overdue_and_keeps_manual_states(self, db_session: Session, create_invoice, sample_user):
        service = make_service(db_session)
        overdue = create_invoice(issue_date="2024-05-01", due_date_offset_days=10)
        current = create_invoice(invoice_number=2)
        paid = create_invoice(invoice_number=3, issue_date="2024-01-01", due_date_offset_days=0)
        emailed = create_invoice(invoice_number=4, issue_date="2024-01-01", due_date_offset_days=0)
        service.mark_as_paid(paid.id, sample_user.id)
        service.mark_as_emailed(emailed.id, sample_user.id)

        changed = service.refresh_statuses(FIXED_NOW)

        assert changed == 1
        for invoice in (overdue, current, paid, emailed):
            db_session.refresh(invoice)
        assert overdue.status == InvoiceStatus.OVERDUE
        assert current.status == InvoiceStatus.PENDING
        assert paid.status == InvoiceStatus.PAID
        assert emailed.status == InvoiceStatus.EMAILED

    def test_refresh_is_idempotent(self, db_session: Session, create_invoice):
        create_invoice(issue_date="2024-05-01", due_date_offset_days=10)
        service = make_service(db_session)
        assert service.refresh_statuses(FIXED_NOW) == 1
        assert service.refresh_statuses(FIXED_NOW) == 0


class TestQueries:

    def test_next_invoice_number(self, db_session: Session, create_invoice, sample_user, other_user):
        service = make_service(db_session)
        assert service.next_invoice_number(sample_user.id) == 1

        create_invoice(invoice_number=7)
        create_invoice(invoice_number=3)
        assert service.next_invoice_number(sample_user.id) == 8
        assert service.next_invoice_number(other_user.id) == 1

    def test_dashboard_summary(self, db_session: Session, create_invoice, sample_user):
        service = make_service(db_session)
        create_invoice(items=[{"description": "A", "quantity": 1, "rate": "100"}])
        partial = create_invoice(invoice_number=2, items=[{"description": "B", "quantity": 1, "rate": "200"}])
        paid = create_invoice(invoice_number=3, items=[{"description": "C", "quantity": 1, "rate": "80"}])
        service.record_payment(partial.id, PaymentCreate(amount=Decimal("50")), sample_user.id)
        service.record_payment(paid.id, PaymentCreate(amount=Decimal("80")), sample_user.id)

        summary = service.dashboard_summary(sample_user.id)

        assert summary.total_revenue == Decimal("130.00")
        assert summary.outstanding == Decimal("250.00")
        assert summary.invoice_count == 3
        assert summary.status_counts["PENDING"] == 1
        assert summary.status_counts["PARTIALLY_PAID"] == 1
        assert summary.status_counts["PAID"] == 1
        assert summary.status_counts["EMAILED"] == 0

    def test_list_is_scoped_by_owner(self, db_session: Session, create_invoice, sample_user, other_user):
        create_invoice()
        create_invoice(owner=other_user)

        invoices, total = make_service(db_session).list_invoices(sample_user.id)
        assert total == 1
        assert invoices[0].user_id == sample_user.id

    def test_list_filters_by_status_and_search(self, db_session: Session, create_invoice, sample_user):
        service = make_service(db_session)
        first = create_invoice(client_name="Globex")
        create_invoice(invoice_number=2, client_name="Initech")
        service.mark_as_paid(first.id, sample_user.id)

        paid, _ = service.list_invoices(sample_user.id, status=InvoiceStatus.PAID)
        found, _ = service.list_invoices(sample_user.id, search="initech")

        assert [i.client_name for i in paid] == ["Globex"]
        assert [i.client_name for i in found] == ["Initech"]

    def test_foreign_invoice_is_not_found(self, db_session: Session, create_invoice, other_user):
        invoice = create_invoice()
        with pytest.raises(InvoiceNotFound):
            make_service(db_session).get_invoice(invoice.id, other_user.id)


# ===== TESTS DE PDF =====

class TestInvoicePdf:

    def test_render_pdf_signature(self, db_session: Session, create_invoice):
        invoice = create_invoice(currency="EUR", note="Payable by bank transfer")
        content, filename = make_service(db_session).render_pdf(invoice.id)

        assert content.startswith(b"%PDF")
        assert filename == "invoice-1.pdf"

    def test_render_pdf_with_company_and_payments(self, db_session: Session, create_invoice, sample_company, sample_user):
        invoice = create_invoice()
        make_service(db_session).record_payment(invoice.id, PaymentCreate(amount=Decimal("25")), sample_user.id)

        snapshot = InvoiceSnapshot.from_invoice(invoice, sample_company)
        assert snapshot.from_name == "Lovelace Consulting"
        assert render_invoice_pdf(snapshot).startswith(b"%PDF")

    def test_render_pdf_handles_non_latin_text(self):
        snapshot = InvoiceSnapshot(
            invoice_number=9, invoice_name="Überweisung ✓", issue_date=date(2024, 6, 1),
            due_date_offset_days=0, currency="EUR", status="PENDING",
            from_name="Zoë", from_email="zoe@example.com", from_address="Straße 1",
            client_name="李雷", client_email="li@example.com", client_address="Beijing",
            total=Decimal("10"), total_paid=Decimal("0"),
        )
        assert render_invoice_pdf(snapshot).startswith(b"%PDF")

    def test_missing_invoice_pdf(self, db_session: Session):
        from uuid import uuid4
        with pytest.raises(InvoiceNotFound):
            make_service(db_session).render_pdf(uuid4())


# ===== TESTS DE API =====

class TestInvoiceAPI:

    def test_create_invoice_endpoint(self, client, auth_headers, invoice_payload, notifier):
        response = client.post("/invoices", json=invoice_payload(), headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert Decimal(data["total"]) == Decimal("100")
        assert data["status"] == "PENDING"
        assert data["formatted_total"] == "$100.00"
        assert len(data["items"]) == 1
        assert notifier.sent[0]["kind"] == "created"

    def test_create_requires_auth(self, client, invoice_payload):
        response = client.post("/invoices", json=invoice_payload())
        assert response.status_code in (401, 403)

    def test_create_rejects_bad_items(self, client, auth_headers, invoice_payload):
        bad_quantity = invoice_payload(items=[{"description": "A", "quantity": 0, "rate": "1"}])
        assert client.post("/invoices", json=bad_quantity, headers=auth_headers).status_code == 422

        malformed = invoice_payload(items="[{not json")
        response = client.post("/invoices", json=malformed, headers=auth_headers)
        assert response.status_code == 400

    def test_insufficient_stock_endpoint(self, client, auth_headers, invoice_payload, sample_product):
        response = client.post(
            "/invoices", json=invoice_payload(items=[product_item(sample_product, 6)]), headers=auth_headers
        )
        assert response.status_code == 409
        assert response.json()["detail"]["available"] == 5

    def test_invoice_lifecycle_endpoints(self, client, auth_headers, invoice_payload, sample_product, db_session: Session):
        created = client.post(
            "/invoices", json=invoice_payload(items=[product_item(sample_product, 3)]), headers=auth_headers
        ).json()
        invoice_id = created["id"]

        listed = client.get("/invoices", headers=auth_headers).json()
        assert listed["total"] == 1

        updated = client.put(
            f"/invoices/{invoice_id}",
            json=invoice_payload(items=[product_item(sample_product, 4)]),
            headers=auth_headers
        )
        assert updated.status_code == 200
        assert Decimal(updated.json()["total"]) == Decimal("80")

        payment = client.post(f"/invoices/{invoice_id}/payments", json={"amount": "30", "method": "card"}, headers=auth_headers)
        assert payment.status_code == 201
        assert payment.json()["status"] == "PARTIALLY_PAID"

        history = client.get(f"/invoices/{invoice_id}/payments", headers=auth_headers).json()
        assert Decimal(history["progress"]) == Decimal("37.5")
        assert history["payments"][0]["method"] == "card"

        assert client.post(f"/invoices/{invoice_id}/mark-paid", headers=auth_headers).json()["status"] == "PAID"

        assert client.delete(f"/invoices/{invoice_id}", headers=auth_headers).status_code == 204
        assert client.get(f"/invoices/{invoice_id}", headers=auth_headers).status_code == 404
        db_session.refresh(sample_product)
        assert sample_product.stock_qty == 5

    def test_zero_payment_is_rejected(self, client, auth_headers, invoice_payload):
        invoice_id = client.post("/invoices", json=invoice_payload(), headers=auth_headers).json()["id"]
        response = client.post(f"/invoices/{invoice_id}/payments", json={"amount": "0"}, headers=auth_headers)
        assert response.status_code == 422

    def test_send_email_endpoint(self, client, auth_headers, invoice_payload, notifier):
        invoice_id = client.post("/invoices", json=invoice_payload(), headers=auth_headers).json()["id"]

        response = client.post(f"/invoices/{invoice_id}/send-email", headers=auth_headers)

        assert response.status_code == 202
        assert response.json()["status"] == "EMAILED"
        assert notifier.sent[-1]["kind"] == "reminder"

    def test_pdf_endpoint_is_public(self, client, auth_headers, invoice_payload):
        invoice_id = client.post("/invoices", json=invoice_payload(), headers=auth_headers).json()["id"]

        response = client.get(f"/invoices/{invoice_id}/pdf")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_next_number_and_dashboard(self, client, auth_headers, invoice_payload):
        client.post("/invoices", json=invoice_payload(invoice_number=4), headers=auth_headers)

        assert client.get("/invoices/next-number", headers=auth_headers).json()["next_number"] == 5
        dashboard = client.get("/invoices/dashboard", headers=auth_headers).json()
        assert dashboard["invoice_count"] == 1
        assert Decimal(dashboard["outstanding"]) == Decimal("100")
