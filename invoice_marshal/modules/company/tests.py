"""
Tests para el perfil de empresa
"""

import pytest
from fastapi import HTTPException
from sqlalchemy.orm import Session

from invoice_marshal.modules.company import service
from invoice_marshal.modules.company.models import Company
from invoice_marshal.modules.company.schemas import CompanyUpsert


class TestCompanyService:

    def test_get_missing_company(self, db_session: Session, sample_user):
        assert service.get_company_for_user(db_session, sample_user.id) is None
        with pytest.raises(HTTPException) as exc:
            service.get_company(db_session, sample_user)
        assert exc.value.status_code == 404

    def test_upsert_creates_then_updates(self, db_session: Session, sample_user):
        created = service.upsert_company(
            db_session, CompanyUpsert(name="Acme", email="hello@acme.example.com", website=""), sample_user
        )
        assert created.website is None

        updated = service.upsert_company(
            db_session, CompanyUpsert(name="Acme Ltd", email="billing@acme.example.com", tax_id="X-1"), sample_user
        )

        assert updated.id == created.id
        assert updated.name == "Acme Ltd"
        assert updated.tax_id == "X-1"
        assert db_session.query(Company).count() == 1

    def test_one_company_per_user(self, db_session: Session, sample_user, other_user):
        service.upsert_company(db_session, CompanyUpsert(name="Mine", email="a@mine.example.com"), sample_user)
        service.upsert_company(db_session, CompanyUpsert(name="Theirs", email="b@theirs.example.com"), other_user)

        assert service.get_company(db_session, sample_user).name == "Mine"
        assert service.get_company(db_session, other_user).name == "Theirs"


class TestCompanyAPI:

    def test_company_endpoints(self, client, auth_headers):
        assert client.get("/company", headers=auth_headers).status_code == 404

        response = client.put("/company", json={
            "name": "Lovelace Consulting",
            "email": "billing@lovelace.example.com",
            "phone": "+44 20 7946 0000"
        }, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["name"] == "Lovelace Consulting"

        assert client.get("/company", headers=auth_headers).json()["phone"] == "+44 20 7946 0000"

    def test_invalid_company_email(self, client, auth_headers):
        response = client.put("/company", json={"name": "Acme", "email": "not-an-email"}, headers=auth_headers)
        assert response.status_code == 422
