"""
Tests para el catálogo de Productos

Cubren:
- CRUD de productos y variaciones
- Ajuste manual de inventario
- Alertas de stock bajo
- Aislamiento por propietario
"""

import pytest
from decimal import Decimal
from uuid import uuid4
from sqlalchemy.orm import Session

from invoice_marshal.common.currency import Currency
from invoice_marshal.common.exceptions import ProductNotFound, VariationNotFound
from invoice_marshal.modules.products.models import Product, ProductVariation, ProductType
from invoice_marshal.modules.products.schemas import (
    ProductCreate, ProductUpdate, StockUpdate, VariationCreate, VariationUpdate
)
from invoice_marshal.modules.products.service import ProductService


# ===== TESTS DEL SERVICIO =====

class TestProductService:

    def test_create_product_with_variations(self, db_session: Session, sample_user):
        data = ProductCreate(
            name="  T-Shirt  ",
            type=ProductType.PRODUCT,
            base_price=Decimal("15.00"),
            currency=Currency.EUR,
            track_stock=True,
            stock_qty=10,
            variations=[
                VariationCreate(name="Size", value="M", stock_qty=4),
                VariationCreate(name="Size", value="XL", price_adjust=Decimal("3"), stock_qty=6),
            ]
        )

        product = ProductService(db_session).create_product(data, sample_user.id)

        assert product.name == "T-Shirt"
        assert product.currency == "EUR"
        assert product.type == ProductType.PRODUCT
        assert sorted(v.value for v in product.variations) == ["M", "XL"]
        xl = next(v for v in product.variations if v.value == "XL")
        assert xl.price == Decimal("18.00")

    def test_service_defaults(self, db_session: Session, sample_user):
        product = ProductService(db_session).create_product(
            ProductCreate(name="Consulting hour", base_price=Decimal("90")), sample_user.id
        )
        assert product.type == ProductType.SERVICE
        assert product.track_stock is False
        assert product.is_low_stock is False

    def test_update_product(self, db_session: Session, sample_product, sample_user):
        product = ProductService(db_session).update_product(
            sample_product.id,
            ProductUpdate(base_price=Decimal("25"), currency=Currency.EUR),
            sample_user.id
        )
        assert product.base_price == Decimal("25.00")
        assert product.currency == "EUR"
        assert product.name == "Widget"

    def test_delete_product_removes_variations(self, db_session: Session, sample_product, sample_variation, sample_user):
        ProductService(db_session).delete_product(sample_product.id, sample_user.id)
        assert db_session.query(Product).count() == 0
        assert db_session.query(ProductVariation).count() == 0

    def test_products_are_scoped_by_owner(self, db_session: Session, sample_product, other_user):
        service = ProductService(db_session)
        with pytest.raises(ProductNotFound):
            service.get_product(sample_product.id, other_user.id)
        assert service.list_products(other_user.id) == []

    def test_list_products_search(self, db_session: Session, sample_product, sample_user):
        service = ProductService(db_session)
        service.create_product(ProductCreate(name="Gizmo", sku="GIZ-9", base_price=Decimal("1")), sample_user.id)

        assert [p.name for p in service.list_products(sample_user.id)] == ["Gizmo", "Widget"]
        assert [p.name for p in service.list_products(sample_user.id, search="wid")] == ["Widget"]
        assert [p.name for p in service.list_products(sample_user.id, search="GIZ-")] == ["Gizmo"]


class TestStock:

    def test_update_product_stock(self, db_session: Session, sample_product, sample_user):
        product = ProductService(db_session).update_stock(sample_product.id, StockUpdate(stock_qty=42), sample_user.id)
        assert product.stock_qty == 42

    def test_update_variation_stock(self, db_session: Session, sample_product, sample_variation, sample_user):
        ProductService(db_session).update_stock(
            sample_product.id, StockUpdate(stock_qty=9, variation_id=sample_variation.id), sample_user.id
        )
        db_session.refresh(sample_variation)
        assert sample_variation.stock_qty == 9

    def test_update_stock_unknown_variation(self, db_session: Session, sample_product, sample_user):
        with pytest.raises(VariationNotFound):
            ProductService(db_session).update_stock(
                sample_product.id, StockUpdate(stock_qty=1, variation_id=uuid4()), sample_user.id
            )

    def test_low_stock_products(self, db_session: Session, sample_product, sample_user):
        service = ProductService(db_session)
        assert service.get_low_stock_products(sample_user.id).total_count == 0

        service.update_stock(sample_product.id, StockUpdate(stock_qty=2), sample_user.id)
        service.create_product(
            ProductCreate(name="Untracked", base_price=Decimal("1"), track_stock=False, min_stock_level=5),
            sample_user.id
        )

        low = service.get_low_stock_products(sample_user.id)
        assert low.total_count == 1
        assert low.products[0].name == "Widget"


class TestVariations:

    def test_add_update_delete_variation(self, db_session: Session, sample_product, sample_user):
        service = ProductService(db_session)
        variation = service.add_variation(
            sample_product.id, VariationCreate(name="Color", value="Red", stock_qty=2), sample_user.id
        )
        assert variation.product_id == sample_product.id

        variation = service.update_variation(variation.id, VariationUpdate(value="Blue"), sample_user.id)
        assert variation.value == "Blue"
        assert variation.name == "Color"

        service.delete_variation(variation.id, sample_user.id)
        assert db_session.query(ProductVariation).count() == 0

    def test_foreign_variation_is_not_found(self, db_session: Session, sample_variation, other_user):
        with pytest.raises(VariationNotFound):
            ProductService(db_session).update_variation(sample_variation.id, VariationUpdate(value="S"), other_user.id)


# ===== TESTS DE API =====

class TestProductAPI:

    def test_create_and_get_product(self, client, auth_headers):
        response = client.post("/products", json={
            "name": "Mug",
            "type": "PRODUCT",
            "base_price": "8.50",
            "track_stock": True,
            "stock_qty": 1,
            "min_stock_level": 2,
            "variations": [{"name": "Color", "value": "White", "stock_qty": 1}]
        }, headers=auth_headers)

        assert response.status_code == 201
        product = response.json()
        assert product["is_low_stock"] is True
        assert product["currency"] == "USD"
        assert len(product["variations"]) == 1

        fetched = client.get(f"/products/{product['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["name"] == "Mug"

    def test_invalid_product(self, client, auth_headers):
        response = client.post("/products", json={"name": "Bad", "base_price": "-1"}, headers=auth_headers)
        assert response.status_code == 422

    def test_stock_and_low_stock_endpoints(self, client, auth_headers, sample_product):
        response = client.put(f"/products/{sample_product.id}/stock", json={"stock_qty": 1}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["stock_qty"] == 1

        low = client.get("/products/low-stock", headers=auth_headers).json()
        assert low["total_count"] == 1
        assert low["products"][0]["id"] == str(sample_product.id)

    def test_variation_endpoints(self, client, auth_headers, sample_product):
        created = client.post(
            f"/products/{sample_product.id}/variations",
            json={"name": "Size", "value": "S", "stock_qty": 2},
            headers=auth_headers
        )
        assert created.status_code == 201
        variation_id = created.json()["id"]

        patched = client.patch(f"/products/variations/{variation_id}", json={"stock_qty": 0}, headers=auth_headers)
        assert patched.json()["stock_qty"] == 0

        assert client.delete(f"/products/variations/{variation_id}", headers=auth_headers).status_code == 204

    def test_delete_product_endpoint(self, client, auth_headers, sample_product):
        assert client.delete(f"/products/{sample_product.id}", headers=auth_headers).status_code == 204
        assert client.get(f"/products/{sample_product.id}", headers=auth_headers).status_code == 404

    def test_requires_auth(self, client):
        assert client.get("/products").status_code in (401, 403)
