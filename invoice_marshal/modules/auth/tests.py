"""
Tests para el módulo de Autenticación

Registro, login con formulario OAuth2, perfil actual y onboarding.
"""

import pytest
from datetime import timedelta
from fastapi import HTTPException
from sqlalchemy.orm import Session

from invoice_marshal.modules.auth.models import User
from invoice_marshal.modules.auth.schemas import OnboardingUpdate, UserCreate
from invoice_marshal.modules.auth.service import AuthService
from invoice_marshal.modules.auth.utils import create_access_token, hash_password, verify_password


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("supersecret")
        assert hashed != "supersecret"
        assert verify_password("supersecret", hashed)
        assert not verify_password("wrong-password", hashed)


class TestAuthService:

    def test_create_user_normalizes_email(self, db_session: Session):
        user = AuthService(db_session).create_user(UserCreate(email="New.User@Example.com", password="longenough"))
        assert user.email == "new.user@example.com"
        assert user.is_onboarded is False

    def test_duplicate_email(self, db_session: Session, sample_user):
        with pytest.raises(HTTPException) as exc:
            AuthService(db_session).create_user(UserCreate(email="OWNER@example.com", password="longenough"))
        assert exc.value.status_code == 400

    def test_login_sets_last_login(self, db_session: Session, sample_user):
        token = AuthService(db_session).login("owner@example.com", "supersecret")

        assert token.token_type == "bearer"
        assert token.user.email == "owner@example.com"
        db_session.refresh(sample_user)
        assert sample_user.last_login is not None

    def test_login_wrong_password(self, db_session: Session, sample_user):
        with pytest.raises(HTTPException) as exc:
            AuthService(db_session).login("owner@example.com", "nope-nope")
        assert exc.value.status_code == 401

    def test_login_inactive_user(self, db_session: Session, sample_user):
        sample_user.is_active = False
        db_session.commit()
        with pytest.raises(HTTPException) as exc:
            AuthService(db_session).login("owner@example.com", "supersecret")
        assert exc.value.status_code == 403

    def test_complete_onboarding(self, db_session: Session, other_user):
        user = AuthService(db_session).complete_onboarding(
            other_user, OnboardingUpdate(first_name=" Grace ", last_name="Hopper", address="Arlington, VA")
        )
        assert user.first_name == "Grace"
        assert user.full_name == "Grace Hopper"
        assert user.is_onboarded is True


class TestAuthAPI:

    def test_register_and_login(self, client, db_session: Session):
        response = client.post("/auth/register", json={"email": "grace@example.com", "password": "cobol1959"})
        assert response.status_code == 201
        assert response.json()["is_onboarded"] is False

        login = client.post("/auth/login", data={"username": "grace@example.com", "password": "cobol1959"})
        assert login.status_code == 200
        body = login.json()
        assert body["access_token"]
        assert body["expires_in"] > 0

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.json()["email"] == "grace@example.com"

    def test_register_short_password(self, client):
        response = client.post("/auth/register", json={"email": "grace@example.com", "password": "short"})
        assert response.status_code == 422

    def test_login_bad_credentials(self, client, sample_user):
        response = client.post("/auth/login", data={"username": "owner@example.com", "password": "incorrect"})
        assert response.status_code == 401

    def test_me_with_invalid_token(self, client):
        response = client.get("/auth/me", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401

    def test_me_with_expired_token(self, client, sample_user):
        token = create_access_token({"sub": str(sample_user.id)}, expires_delta=timedelta(minutes=-5))
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_with_non_uuid_subject(self, client):
        """Un sub que no es UUID se rechaza como credencial inválida"""
        token = create_access_token({"sub": "owner@example.com"})
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_token_of_deleted_user(self, client, db_session: Session, other_user):
        token = create_access_token({"sub": str(other_user.id)})
        db_session.delete(other_user)
        db_session.commit()

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_onboarding_endpoint(self, client, db_session: Session, other_user):
        token = create_access_token({"sub": str(other_user.id)})
        headers = {"Authorization": f"Bearer {token}"}

        invalid = client.patch("/auth/onboarding", json={"first_name": "G", "last_name": "Hopper", "address": "x"}, headers=headers)
        assert invalid.status_code == 422

        response = client.patch(
            "/auth/onboarding",
            json={"first_name": "Grace", "last_name": "Hopper", "address": "Arlington, VA"},
            headers=headers
        )
        assert response.status_code == 200
        assert response.json()["is_onboarded"] is True
        assert db_session.query(User).filter(User.id == other_user.id).one().first_name == "Grace"
