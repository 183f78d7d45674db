"""
Seed script: Populate a demo account with realistic invoicing data.

What it creates:
- Owner user (active + onboarded) with credentials.
- Company profile used as sender identity on PDFs and emails.
- Products: services and stock-tracked products, some with variations.
- Invoices: mix of PENDING / PARTIALLY_PAID / PAID / OVERDUE, with payments.

No emails are queued: invoices are created without a notifier.

Run inside the API container to use the 'postgres' host:
    docker compose exec api python scripts/seed_demo_data.py \
        --email demo@invoicemarshal.dev \
        --password MarshalDemo!2025 \
        --invoices 60

Note: This is intended for development environments only.
"""

import argparse
import random
from datetime import date, timedelta
from decimal import Decimal

from fastapi import HTTPException

from invoice_marshal.database.database import Base, SessionLocal, sync_engine
from invoice_marshal.modules.auth.models import User
from invoice_marshal.modules.auth.utils import hash_password
from invoice_marshal.modules.company.models import Company
from invoice_marshal.modules.products.models import Product, ProductVariation, ProductType
from invoice_marshal.modules.invoices.service import InvoiceService
from invoice_marshal.modules.invoices.schemas import InvoiceCreate, InvoiceItemIn, PaymentCreate

CLIENTS = [
    ("Globex Corporation", "ap@globex.example.com", "742 Evergreen Terrace, Springfield"),
    ("Initech", "billing@initech.example.com", "4120 Freidrich Lane, Austin"),
    ("Umbrella Labs", "finance@umbrella.example.com", "1 Raccoon Way, Raccoon City"),
    ("Stark Industries", "payables@stark.example.com", "10880 Malibu Point, Malibu"),
    ("Wayne Enterprises", "invoices@wayne.example.com", "1007 Mountain Drive, Gotham"),
]

SERVICES = [("Consulting hour", "90.00"), ("Design sprint", "1500.00"), ("Monthly retainer", "2400.00")]
PRODUCTS = [("USB-C Dock", "129.00", 40), ("Ergonomic Keyboard", "89.50", 25), ("27in Monitor", "349.00", 12)]


def pick(seq):
    return random.choice(seq)


def create_owner_user(db, email: str, password: str, first_name="Demo", last_name="Owner"):
    user = db.query(User).filter(User.email == email).first()
    if user:
        return user
    user = User(
        email=email,
        password=hash_password(password),
        is_active=True,
        first_name=first_name,
        last_name=last_name,
        address="500 Market Street, San Francisco",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_company(db, user, name: str):
    existing = db.query(Company).filter(Company.user_id == user.id).first()
    if existing:
        return existing
    company = Company(
        user_id=user.id,
        name=name,
        email=f"billing@{name.lower().replace(' ', '')}.example.com",
        address="500 Market Street, San Francisco",
        phone=f"+1 415 555 {random.randint(1000, 9999)}",
        tax_id=f"US{random.randint(10000000, 99999999)}",
    )
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def create_products(db, owner_id):
    products = []
    for name, price in SERVICES:
        existing = db.query(Product).filter(Product.user_id == owner_id, Product.name == name).first()
        if existing:
            products.append(existing)
            continue
        product = Product(user_id=owner_id, name=name, type=ProductType.SERVICE, base_price=Decimal(price))
        db.add(product)
        products.append(product)

    for name, price, stock in PRODUCTS:
        existing = db.query(Product).filter(Product.user_id == owner_id, Product.name == name).first()
        if existing:
            products.append(existing)
            continue
        product = Product(
            user_id=owner_id,
            name=name,
            sku=name.upper().replace(" ", "-")[:12],
            type=ProductType.PRODUCT,
            base_price=Decimal(price),
            track_stock=True,
            stock_qty=stock,
            min_stock_level=3,
            reorder_point=5,
        )
        if name == "Ergonomic Keyboard":
            product.variations = [
                ProductVariation(name="Layout", value="US", stock_qty=15),
                ProductVariation(name="Layout", value="UK", price_adjust=Decimal("4.00"), stock_qty=10),
            ]
        db.add(product)
        products.append(product)

    db.commit()
    for product in products:
        db.refresh(product)
    return products


def build_items(products):
    items = []
    for _ in range(random.randint(1, 4)):
        product = pick(products)
        variation = pick(product.variations) if product.variations else None
        rate = Decimal(product.base_price) + (Decimal(variation.price_adjust) if variation else Decimal("0"))
        items.append(InvoiceItemIn(
            description=f"{product.name} ({variation.value})" if variation else product.name,
            quantity=random.randint(1, 3),
            rate=rate,
            product_id=product.id,
            variation_id=variation.id if variation else None,
        ))
    return items


def create_invoices(db, user, products, invoices_count):
    service = InvoiceService(db)
    next_number = service.next_invoice_number(user.id)
    created = 0
    for i in range(invoices_count):
        client_name, client_email, client_address = pick(CLIENTS)
        invoice_in = InvoiceCreate(
            invoice_name=f"{client_name} - order {next_number + i}",
            invoice_number=next_number + i,
            issue_date=date.today() - timedelta(days=random.randint(0, 60)),
            due_date_offset_days=pick([7, 14, 30]),
            from_name=user.full_name,
            from_email=user.email,
            from_address=user.address,
            client_name=client_name,
            client_email=client_email,
            client_address=client_address,
            items=build_items(products),
        )
        try:
            invoice = service.create_invoice(invoice_in, user.id)
        except HTTPException as e:
            # Stock agotado para alguno de los items
            print(f"  Skipped invoice #{invoice_in.invoice_number}: {e.detail}")
            continue

        roll = random.random()
        if roll < 0.3:
            service.record_payment(invoice.id, PaymentCreate(amount=invoice.total, method="bank transfer"), user.id)
        elif roll < 0.5:
            partial = (Decimal(invoice.total) * Decimal("0.4")).quantize(Decimal("0.01"))
            service.record_payment(invoice.id, PaymentCreate(amount=partial, method="card"), user.id)
        created += 1
        if created % 20 == 0:
            print(f"  Invoices created: {created}")

    # Dejar los estados derivados al día (OVERDUE para las vencidas)
    service.refresh_statuses()
    return created


def main():
    parser = argparse.ArgumentParser(description="Seed invoicing demo data")
    parser.add_argument("--company-name", default="Marshal Demo Studio")
    parser.add_argument("--email", default="demo@invoicemarshal.dev")
    parser.add_argument("--password", default="MarshalDemo!2025")
    parser.add_argument("--invoices", type=int, default=60)
    args = parser.parse_args()

    Base.metadata.create_all(bind=sync_engine)
    db = SessionLocal()
    try:
        user = create_owner_user(db, args.email, args.password)
        company = create_company(db, user, args.company_name)

        print("Creating products...")
        products = create_products(db, user.id)
        print(f"Products created: {len(products)}")

        print("Creating invoices (affect inventory)...")
        invoices_created = create_invoices(db, user, products, args.invoices)
        print(f"Invoices created: {invoices_created}")

        print("\nSeed completed.")
        print("Login credentials:")
        print(f"  Email:    {args.email}")
        print(f"  Password: {args.password}")
        print("Company:")
        print(f"  Name:     {company.name}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
