"""
Authentication flow tests.

Covers registration, email verification, login throttling, refresh and
logout through the HTTP surface, with the mailer replaced by a recorder.
"""

from datetime import timedelta

import pytest

from etrans.models import Company, RefreshToken, Role, User
from etrans.services import auth_service, login_throttle_service, session_service
from etrans.services.auth_service import PasswordValidationError
from etrans.time_utils import utcnow

PASSWORD = "Password123!"

REGISTRATION = {
    "company_name": "Conakry Transit",
    "name": "Mariama Diallo",
    "email": "Mariama@Example.com",
    "password": PASSWORD,
}


def _register(client, **overrides):
    return client.post("/api/auth/register", json={**REGISTRATION, **overrides})


class TestPasswordStrength:
    @pytest.mark.parametrize(
        "password",
        ["Short1!", "nouppercase1!", "NOLOWERCASE1!", "NoDigitsHere!", "NoSpecial123"],
    )
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_strong_password_hashes_and_verifies(self):
        hashed = auth_service.hash_password(PASSWORD)
        assert hashed.startswith("$2b$12$")
        assert auth_service.verify_password(PASSWORD, hashed)
        assert not auth_service.verify_password("Wrong123!", hashed)

    def test_malformed_hash_does_not_verify(self):
        assert auth_service.verify_password(PASSWORD, "not-a-hash") is False


class TestRegistration:
    def test_register_creates_company_and_director(self, client, db_session, mailer):
        resp = _register(client)
        assert resp.status_code == 201
        assert resp.get_json()["requires_verification"] is True

        user = db_session.query(User).filter_by(email="mariama@example.com").one()
        assert user.role == Role.DIRECTOR
        assert user.email_verified is False
        assert user.is_active is False
        assert user.company.name == "Conakry Transit"
        assert user.company.slug == "conakry-transit"
        assert mailer.last_code("mariama@example.com") == user.verification_code

    def test_register_collects_all_field_errors(self, client, db_session, mailer):
        resp = _register(client, company_name="A", email="not-an-email", password="weak")
        assert resp.status_code == 400
        fields = {e["field"] for e in resp.get_json()["errors"]}
        assert {"company_name", "email", "password"} <= fields
        assert db_session.query(User).count() == 0

    def test_register_unverified_again_resends_code(self, client, db_session, mailer):
        _register(client)
        first_code = mailer.last_code("mariama@example.com")

        resp = _register(client)
        assert resp.status_code == 200
        assert db_session.query(User).count() == 1
        assert db_session.query(Company).count() == 1
        assert len([m for m in mailer.sent if m["kind"] == "verification"]) == 2
        user = db_session.query(User).one()
        assert user.verification_code == mailer.last_code("mariama@example.com")
        assert first_code is not None

    def test_register_verified_email_conflicts(self, client, director_a, mailer):
        resp = _register(client, email=director_a.email)
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "EMAIL_IN_USE"

    def test_duplicate_company_names_get_distinct_slugs(self, client, db_session, mailer):
        _register(client)
        _register(client, email="second@example.com")
        slugs = sorted(c.slug for c in db_session.query(Company).all())
        assert slugs == ["conakry-transit", "conakry-transit-1"]


class TestEmailVerification:
    def test_verify_sets_cookies_and_activates(self, client, db_session, mailer):
        _register(client)
        code = mailer.last_code("mariama@example.com")

        resp = client.post("/api/auth/verify-email", json={"email": "mariama@example.com", "code": code})
        assert resp.status_code == 200
        cookies = resp.headers.getlist("Set-Cookie")
        assert any(c.startswith("accessToken=") and "HttpOnly" in c for c in cookies)
        assert any(c.startswith("refreshToken=") and "HttpOnly" in c for c in cookies)

        user = db_session.query(User).one()
        assert user.email_verified and user.is_active
        assert user.verification_code is None
        assert db_session.query(RefreshToken).filter_by(user_id=user.id).count() == 1
        assert any(m["kind"] == "welcome" for m in mailer.sent)

        me = client.get("/api/auth/me")
        assert me.status_code == 200
        assert me.get_json()["data"]["user"]["company"]["name"] == "Conakry Transit"

    def test_wrong_code(self, client, db_session, mailer):
        _register(client)
        code = mailer.last_code("mariama@example.com")
        wrong = "000000" if code != "000000" else "111111"
        resp = client.post("/api/auth/verify-email", json={"email": "mariama@example.com", "code": wrong})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_CODE"

    def test_expired_code(self, client, db_session, mailer):
        _register(client)
        user = db_session.query(User).one()
        user.code_expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        resp = client.post(
            "/api/auth/verify-email",
            json={"email": "mariama@example.com", "code": user.verification_code},
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "CODE_EXPIRED"

    def test_already_verified(self, client, director_a, mailer):
        resp = client.post("/api/auth/verify-email", json={"email": director_a.email, "code": "123456"})
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "ALREADY_VERIFIED"

    def test_resend_code_never_reveals_accounts(self, client, db_session, mailer):
        resp = client.post("/api/auth/resend-code", json={"email": "nobody@example.com"})
        assert resp.status_code == 200
        assert mailer.sent == []


class TestLogin:
    def _login(self, client, email, password=PASSWORD):
        return client.post("/api/auth/login", json={"email": email, "password": password})

    def test_login_success_sets_cookies(self, client, db_session, director_a):
        resp = self._login(client, director_a.email.upper())
        assert resp.status_code == 200
        assert resp.get_json()["data"]["user"]["role"] == "DIRECTOR"
        assert any(c.startswith("accessToken=") for c in resp.headers.getlist("Set-Cookie"))
        db_session.refresh(director_a)
        assert director_a.last_login_at is not None

    def test_unknown_email_and_wrong_password_look_identical(self, client, director_a):
        unknown = self._login(client, "ghost@example.com")
        wrong = self._login(client, director_a.email, "Wrong123!")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.get_json()["code"] == wrong.get_json()["code"] == "INVALID_CREDENTIALS"

    def test_fifth_failure_locks_account(self, client, db_session, director_a):
        for _ in range(login_throttle_service.MAX_FAILED_ATTEMPTS - 1):
            assert self._login(client, director_a.email, "Wrong123!").status_code == 401

        resp = self._login(client, director_a.email, "Wrong123!")
        assert resp.status_code == 423
        assert resp.get_json()["minutes_remaining"] == 15

        # Correct password is refused while locked
        resp = self._login(client, director_a.email)
        assert resp.status_code == 423
        assert resp.get_json()["code"] == "ACCOUNT_LOCKED"

    def test_lock_expires(self, client, db_session, director_a):
        director_a.failed_attempts = 5
        director_a.locked_until = utcnow() - timedelta(seconds=1)
        db_session.commit()

        resp = self._login(client, director_a.email)
        assert resp.status_code == 200
        db_session.refresh(director_a)
        assert director_a.failed_attempts == 0
        assert director_a.locked_until is None

    def test_unverified_login_resends_code(self, client, db_session, make_user, company_a, mailer):
        user = make_user(company_a, Role.AGENT, email_verified=False, is_active=False)
        resp = self._login(client, user.email)
        assert resp.status_code == 403
        body = resp.get_json()
        assert body["code"] == "EMAIL_NOT_VERIFIED"
        assert body["requires_verification"] is True
        assert mailer.last_code(user.email) is not None

    def test_disabled_account(self, client, make_user, company_a):
        user = make_user(company_a, Role.AGENT, is_active=False)
        resp = self._login(client, user.email)
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "ACCOUNT_DISABLED"


class TestRefreshAndLogout:
    def test_refresh_with_cookie(self, client, director_a):
        client.post("/api/auth/login", json={"email": director_a.email, "password": PASSWORD})
        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 200
        assert any(c.startswith("accessToken=") for c in resp.headers.getlist("Set-Cookie"))

    def test_refreshed_access_token_is_accepted(self, app, client, director_a):
        client.post("/api/auth/login", json={"email": director_a.email, "password": PASSWORD})
        refresh_token = client.get_cookie("refreshToken").value

        # Browser that only kept the refresh cookie
        browser = app.test_client()
        browser.set_cookie("refreshToken", refresh_token)
        assert browser.get("/api/auth/me").get_json()["code"] == "NO_TOKEN"

        assert browser.post("/api/auth/refresh").status_code == 200
        resp = browser.get("/api/auth/me")
        assert resp.status_code == 200
        assert resp.get_json()["data"]["user"]["email"] == director_a.email

    def test_refresh_without_token(self, client, db_session):
        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "INVALID_REFRESH_TOKEN"

    def test_refresh_with_forged_token(self, client, db_session):
        resp = client.post("/api/auth/refresh", json={"refresh_token": "forged"})
        assert resp.status_code == 401
        assert resp.get_json()["code"] == "INVALID_REFRESH_TOKEN"

    def test_logout_revokes_refresh_tokens(self, client, db_session, director_a):
        client.post("/api/auth/login", json={"email": director_a.email, "password": PASSWORD})
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert db_session.query(RefreshToken).filter(RefreshToken.revoked_at.is_(None)).count() == 0

        # Cookies were cleared, and the revoked token no longer refreshes
        assert client.post("/api/auth/refresh").status_code == 401

    def test_revoked_token_rejected_even_when_presented(self, app, client, db_session, director_a):
        director_a_id = director_a.id
        _user, _access, refresh = auth_service.login(director_a.email, PASSWORD)
        auth_service.logout(director_a_id)
        resp = client.post("/api/auth/refresh", json={"refresh_token": refresh})
        assert resp.status_code == 401

    def test_cleanup_refresh_tokens(self, db_session, director_a):
        auth_service.login(director_a.email, PASSWORD)
        token = db_session.query(RefreshToken).one()
        token.expires_at = utcnow() - timedelta(days=40)
        db_session.commit()

        assert session_service.cleanup_refresh_tokens(retention_days=30) == 1
        assert db_session.query(RefreshToken).count() == 0
