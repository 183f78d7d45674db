"""
Renderizado del PDF de una factura con fpdf2.

render_invoice_pdf es una función pura sobre un InvoiceSnapshot: no consulta
la base de datos.
"""
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from fpdf import FPDF

from invoice_marshal.common.currency import format_currency
from invoice_marshal.modules.invoices.status import due_at

PDF_ENCODING = "windows-1252"  # cubre el símbolo del euro en las fuentes core


@dataclass(frozen=True)
class ItemSnapshot:
    description: str
    quantity: int
    rate: Decimal

    @property
    def subtotal(self) -> Decimal:
        return Decimal(self.quantity) * Decimal(self.rate)


@dataclass(frozen=True)
class InvoiceSnapshot:
    invoice_number: int
    invoice_name: str
    issue_date: date
    due_date_offset_days: int
    currency: str
    status: str
    from_name: str
    from_email: str
    from_address: str
    client_name: str
    client_email: str
    client_address: str
    total: Decimal
    total_paid: Decimal
    note: Optional[str] = None
    items: List[ItemSnapshot] = field(default_factory=list)
    company_phone: Optional[str] = None
    company_website: Optional[str] = None
    company_tax_id: Optional[str] = None

    @classmethod
    def from_invoice(cls, invoice, company=None) -> "InvoiceSnapshot":
        """La identidad de la empresa, si existe, reemplaza los datos "from"."""
        return cls(
            invoice_number=invoice.invoice_number,
            invoice_name=invoice.invoice_name,
            issue_date=invoice.issue_date,
            due_date_offset_days=invoice.due_date_offset_days,
            currency=invoice.currency,
            status=invoice.status.value,
            from_name=company.name if company else invoice.from_name,
            from_email=company.email if company else invoice.from_email,
            from_address=(company.address if company and company.address else invoice.from_address),
            client_name=invoice.client_name,
            client_email=invoice.client_email,
            client_address=invoice.client_address,
            total=Decimal(invoice.total),
            total_paid=Decimal(invoice.total_paid),
            note=invoice.note,
            items=[
                ItemSnapshot(description=item.description, quantity=item.quantity, rate=Decimal(item.rate))
                for item in invoice.items
            ],
            company_phone=company.phone if company else None,
            company_website=company.website if company else None,
            company_tax_id=company.tax_id if company else None,
        )


def _text(value) -> str:
    # Las fuentes core sólo admiten windows-1252
    return str(value or "").encode(PDF_ENCODING, errors="replace").decode(PDF_ENCODING)


def render_invoice_pdf(snapshot: InvoiceSnapshot) -> bytes:
    money = lambda amount: _text(format_currency(amount, snapshot.currency))
    due_date = due_at(snapshot.issue_date, snapshot.due_date_offset_days).date()

    pdf = FPDF()
    pdf.core_fonts_encoding = PDF_ENCODING
    pdf.set_title(_text(f"Invoice #{snapshot.invoice_number}"))
    pdf.set_author(_text(snapshot.from_name))
    pdf.add_page()
    pdf.set_auto_page_break(auto=True, margin=15)

    # Header
    pdf.set_font("Helvetica", "B", 20)
    pdf.cell(0, 10, _text(snapshot.from_name), new_x="LMARGIN", new_y="NEXT")
    pdf.set_font("Helvetica", "", 10)
    pdf.multi_cell(0, 5, _text(snapshot.from_address), new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 5, _text(snapshot.from_email), new_x="LMARGIN", new_y="NEXT")
    for extra in (snapshot.company_phone, snapshot.company_website):
        if extra:
            pdf.cell(0, 5, _text(extra), new_x="LMARGIN", new_y="NEXT")
    if snapshot.company_tax_id:
        pdf.cell(0, 5, _text(f"Tax ID: {snapshot.company_tax_id}"), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(6)

    pdf.set_font("Helvetica", "B", 16)
    pdf.cell(0, 10, "INVOICE", new_x="LMARGIN", new_y="NEXT", align="R")
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 5, _text(f"#{snapshot.invoice_number} - {snapshot.invoice_name}"), new_x="LMARGIN", new_y="NEXT", align="R")
    pdf.ln(4)

    # Details
    pdf.set_fill_color(240, 240, 240)
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(0, 7, "  Invoice Details", new_x="LMARGIN", new_y="NEXT", fill=True)
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(95, 6, _text(f"  Date: {snapshot.issue_date.strftime('%B %d, %Y')}"), new_x="RIGHT")
    pdf.cell(95, 6, _text(f"Due Date: {due_date.strftime('%B %d, %Y')}"), new_x="LMARGIN", new_y="NEXT")
    pdf.cell(95, 6, _text(f"  Status: {snapshot.status.replace('_', ' ')}"), new_x="RIGHT")
    pdf.cell(95, 6, _text(f"Currency: {snapshot.currency}"), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    # Bill to
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(0, 7, "  Bill To", new_x="LMARGIN", new_y="NEXT", fill=True)
    pdf.set_font("Helvetica", "", 10)
    pdf.cell(0, 6, _text(f"  {snapshot.client_name}"), new_x="LMARGIN", new_y="NEXT")
    pdf.cell(0, 6, _text(f"  {snapshot.client_email}"), new_x="LMARGIN", new_y="NEXT")
    pdf.multi_cell(0, 6, _text(f"  {snapshot.client_address}"), new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    # Items
    pdf.set_font("Helvetica", "B", 9)
    pdf.cell(90, 6, "  Description", border="B")
    pdf.cell(20, 6, "Qty", border="B", align="C")
    pdf.cell(40, 6, "Rate", border="B", align="R")
    pdf.cell(40, 6, "Amount", border="B", align="R", new_x="LMARGIN", new_y="NEXT")

    pdf.set_font("Helvetica", "", 9)
    for item in snapshot.items:
        description = item.description if len(item.description) <= 50 else item.description[:47] + "..."
        pdf.cell(90, 6, _text(f"  {description}"))
        pdf.cell(20, 6, str(item.quantity), align="C")
        pdf.cell(40, 6, money(item.rate), align="R")
        pdf.cell(40, 6, money(item.subtotal), align="R", new_x="LMARGIN", new_y="NEXT")
    pdf.ln(4)

    # Totals
    pdf.set_font("Helvetica", "B", 11)
    pdf.cell(150, 7, "Total:", align="R")
    pdf.cell(40, 7, money(snapshot.total), align="R", new_x="LMARGIN", new_y="NEXT")
    if snapshot.total_paid > 0:
        pdf.set_font("Helvetica", "", 10)
        balance = max(snapshot.total - snapshot.total_paid, Decimal("0"))
        pdf.cell(150, 6, "Paid:", align="R")
        pdf.cell(40, 6, money(snapshot.total_paid), align="R", new_x="LMARGIN", new_y="NEXT")
        pdf.cell(150, 6, "Balance Due:", align="R")
        pdf.cell(40, 6, money(balance), align="R", new_x="LMARGIN", new_y="NEXT")

    if snapshot.note:
        pdf.ln(6)
        pdf.set_font("Helvetica", "B", 10)
        pdf.cell(0, 6, "Note", new_x="LMARGIN", new_y="NEXT")
        pdf.set_font("Helvetica", "", 9)
        pdf.multi_cell(0, 5, _text(snapshot.note), new_x="LMARGIN", new_y="NEXT")

    return bytes(pdf.output())
