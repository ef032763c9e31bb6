"""HTTP tests through FastAPI's TestClient with the store and clock swapped for test doubles."""

import unittest
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from app.api.v1.auth import RESET_REQUESTED_MESSAGE, get_clock, get_mailer
from app.core.config import get_settings
from app.core.database import get_db
from app.main import app
from tests.helpers import (
    OTHER_STRONG_PASSWORD,
    STRONG_PASSWORD,
    WRONG_PASSWORD,
    FakeClock,
    make_account,
    make_session_factory,
    make_settings,
)

PREFIX = "/api/v1"


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.factory = make_session_factory()
        self.db = self.factory()
        self.clock = FakeClock()
        self.settings = make_settings()
        self.mailer = MagicMock()

        def _get_db():
            db = self.factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = _get_db
        app.dependency_overrides[get_settings] = lambda: self.settings
        app.dependency_overrides[get_clock] = lambda: self.clock
        app.dependency_overrides[get_mailer] = lambda: self.mailer
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()

    def login(self, email: str, password: str = STRONG_PASSWORD):
        return self.client.post(f"{PREFIX}/auth/login", json={"email": email, "password": password})

    def bearer(self, email: str, password: str = STRONG_PASSWORD) -> dict[str, str]:
        response = self.login(email, password)
        self.assertEqual(response.status_code, 200, response.text)
        return {"Authorization": f"Bearer {response.json()['access_token']}"}


class TestLoginEndpoints(ApiTestCase):
    def test_login_and_me(self) -> None:
        make_account(self.db, email="unit@example.com")
        response = self.login("Unit@Example.com")
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["token_type"], "bearer")
        self.assertEqual(body["account"]["email"], "unit@example.com")
        self.assertNotIn("password_hash", body["account"])

        me = self.client.get(
            f"{PREFIX}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"}
        )
        self.assertEqual(me.status_code, 200)
        self.assertEqual(me.json()["unit_id"], "U1")

    def test_bad_credentials_are_generic_401(self) -> None:
        make_account(self.db, email="unit@example.com")
        wrong = self.login("unit@example.com", WRONG_PASSWORD)
        unknown = self.login("ghost@example.com")
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.json(), unknown.json())
        self.assertEqual(wrong.headers["WWW-Authenticate"], "Bearer")

    def test_lockout_response(self) -> None:
        make_account(self.db, email="unit@example.com")
        for _ in range(5):
            self.login("unit@example.com", WRONG_PASSWORD)
        response = self.login("unit@example.com")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["code"], "account_locked")
        self.assertEqual(response.headers["Retry-After"], str(15 * 60))

        self.clock.advance(minutes=15)
        self.assertEqual(self.login("unit@example.com").status_code, 200)

    def test_missing_and_invalid_bearer(self) -> None:
        missing = self.client.get(f"{PREFIX}/auth/me")
        self.assertEqual(missing.status_code, 401)
        self.assertEqual(missing.json()["code"], "unauthorized")
        invalid = self.client.get(f"{PREFIX}/auth/me", headers={"Authorization": "Bearer nope"})
        self.assertEqual(invalid.status_code, 401)

    def test_invalid_email_is_422(self) -> None:
        response = self.client.post(
            f"{PREFIX}/auth/login", json={"email": "not-an-email", "password": "x"}
        )
        self.assertEqual(response.status_code, 422)

    def test_refresh_rotation_and_logout(self) -> None:
        make_account(self.db, email="unit@example.com")
        tokens = self.login("unit@example.com").json()
        r1 = tokens["refresh_token"]
        rotated = self.client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": r1})
        self.assertEqual(rotated.status_code, 200)
        replay = self.client.post(f"{PREFIX}/auth/refresh", json={"refresh_token": r1})
        self.assertEqual(replay.status_code, 401)

        headers = {"Authorization": f"Bearer {rotated.json()['access_token']}"}
        self.assertEqual(self.client.post(f"{PREFIX}/auth/logout", headers=headers).status_code, 200)
        after = self.client.post(
            f"{PREFIX}/auth/refresh", json={"refresh_token": rotated.json()["refresh_token"]}
        )
        self.assertEqual(after.status_code, 401)


class TestPasswordEndpoints(ApiTestCase):
    def test_request_reset_same_answer_and_mail_only_on_match(self) -> None:
        make_account(self.db, email="unit@example.com")
        known = self.client.post(f"{PREFIX}/auth/request-reset", json={"email": "unit@example.com"})
        unknown = self.client.post(f"{PREFIX}/auth/request-reset", json={"email": "ghost@example.com"})
        self.assertEqual(known.status_code, 200)
        self.assertEqual(known.json(), unknown.json())
        self.assertEqual(known.json()["message"], RESET_REQUESTED_MESSAGE)
        self.mailer.send_password_reset.assert_called_once()

        delivery = self.mailer.send_password_reset.call_args[0][0]
        reset = self.client.post(
            f"{PREFIX}/auth/reset-password",
            json={"token": delivery.token, "new_password": OTHER_STRONG_PASSWORD},
        )
        self.assertEqual(reset.status_code, 200)
        again = self.client.post(
            f"{PREFIX}/auth/reset-password",
            json={"token": delivery.token, "new_password": OTHER_STRONG_PASSWORD},
        )
        self.assertEqual(again.status_code, 400)
        self.assertEqual(self.login("unit@example.com", OTHER_STRONG_PASSWORD).status_code, 200)

    def test_change_password(self) -> None:
        make_account(self.db, email="unit@example.com")
        headers = self.bearer("unit@example.com")
        wrong = self.client.post(
            f"{PREFIX}/auth/change-password",
            headers=headers,
            json={"current_password": WRONG_PASSWORD, "new_password": OTHER_STRONG_PASSWORD},
        )
        self.assertEqual(wrong.status_code, 401)
        ok = self.client.post(
            f"{PREFIX}/auth/change-password",
            headers=headers,
            json={"current_password": STRONG_PASSWORD, "new_password": OTHER_STRONG_PASSWORD},
        )
        self.assertEqual(ok.status_code, 200)
        self.assertEqual(self.login("unit@example.com", OTHER_STRONG_PASSWORD).status_code, 200)

    def test_register(self) -> None:
        body = {"email": "new@example.com", "password": STRONG_PASSWORD, "name": "Newcomer"}
        created = self.client.post(f"{PREFIX}/auth/register", json=body)
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["status"], "pending")
        self.assertEqual(self.client.post(f"{PREFIX}/auth/register", json=body).status_code, 409)


class TestPermissionEndpoints(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_account(self.db, email="admin@example.com", role="admin")
        self.unit = make_account(self.db, email="unit@example.com")
        self.other = make_account(self.db, email="other@example.com", unit_id="U2")

    def test_my_permissions(self) -> None:
        response = self.client.get(f"{PREFIX}/permissions/me", headers=self.bearer("unit@example.com"))
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["role"], "unit")
        rentals = next(p for p in body["permissions"] if p["resource_id"] == "rentals")
        self.assertTrue(rentals["can_view"])
        self.assertFalse(rentals["can_export"])

    def test_other_account_permissions_forbidden_for_unit(self) -> None:
        response = self.client.get(
            f"{PREFIX}/permissions/accounts/{self.other.id}", headers=self.bearer("unit@example.com")
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["code"], "forbidden")

    def test_admin_override_changes_next_request(self) -> None:
        admin_headers = self.bearer("admin@example.com")
        response = self.client.put(
            f"{PREFIX}/permissions/accounts/{self.unit.id}/overrides",
            headers=admin_headers,
            json={"overrides": [{"resource_id": "rentals", "can_export": True}]},
        )
        self.assertEqual(response.status_code, 200, response.text)

        mine = self.client.get(f"{PREFIX}/permissions/me", headers=self.bearer("unit@example.com")).json()
        rentals = next(p for p in mine["permissions"] if p["resource_id"] == "rentals")
        self.assertTrue(rentals["can_export"])
        self.assertTrue(rentals["is_override"])

        theirs = self.client.get(
            f"{PREFIX}/permissions/accounts/{self.other.id}", headers=admin_headers
        ).json()
        rentals = next(p for p in theirs["permissions"] if p["resource_id"] == "rentals")
        self.assertFalse(rentals["can_export"])

    def test_unknown_resource_is_400(self) -> None:
        response = self.client.put(
            f"{PREFIX}/permissions/accounts/{self.unit.id}/overrides",
            headers=self.bearer("admin@example.com"),
            json={"overrides": [{"resource_id": "nope", "can_view": True}]},
        )
        self.assertEqual(response.status_code, 400)

    def test_role_matrix_admin_only(self) -> None:
        unit_headers = self.bearer("unit@example.com")
        self.assertEqual(
            self.client.get(f"{PREFIX}/permissions/roles/unit", headers=unit_headers).status_code, 403
        )
        admin_headers = self.bearer("admin@example.com")
        updated = self.client.put(
            f"{PREFIX}/permissions/roles/unit",
            headers=admin_headers,
            json={"permissions": [{"resource_id": "leads", "can_view": True}]},
        )
        self.assertEqual(updated.status_code, 200)
        leads = next(p for p in updated.json()["permissions"] if p["resource_id"] == "leads")
        self.assertTrue(leads["can_view"])

    def test_provision_account(self) -> None:
        admin_headers = self.bearer("admin@example.com")
        body = {"email": "fresh@example.com", "role": "unit", "city_id": "C1", "unit_id": "U3"}
        created = self.client.post(f"{PREFIX}/accounts", headers=admin_headers, json=body)
        self.assertEqual(created.status_code, 201, created.text)
        self.assertEqual(created.json()["status"], "active")
        self.assertEqual(
            self.client.post(f"{PREFIX}/accounts", headers=admin_headers, json=body).status_code, 409
        )
        self.assertEqual(
            self.client.post(
                f"{PREFIX}/accounts", headers=self.bearer("unit@example.com"), json=body
            ).status_code,
            403,
        )

    def test_expired_access_token(self) -> None:
        headers = self.bearer("unit@example.com")
        self.clock.advance(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES, seconds=1)
        self.assertEqual(self.client.get(f"{PREFIX}/permissions/me", headers=headers).status_code, 401)


class TestAccountEndpoints(ApiTestCase):
    def setUp(self) -> None:
        super().setUp()
        self.admin = make_account(self.db, email="admin@example.com", role="admin")
        self.unit = make_account(self.db, email="unit@example.com")

    def test_approve_registered_account(self) -> None:
        created = self.client.post(
            f"{PREFIX}/auth/register",
            json={"email": "new@example.com", "password": STRONG_PASSWORD},
        ).json()
        admin_headers = self.bearer("admin@example.com")
        url = f"{PREFIX}/accounts/{created['id']}"

        missing_city = self.client.patch(url, headers=admin_headers, json={"status": "active"})
        self.assertEqual(missing_city.status_code, 400)

        approved = self.client.patch(
            url, headers=admin_headers, json={"status": "active", "city_id": "C9"}
        )
        self.assertEqual(approved.status_code, 200, approved.text)
        self.assertEqual(approved.json()["city_id"], "C9")
        self.assertEqual(self.login("new@example.com").status_code, 200)

    def test_unit_cannot_change_status(self) -> None:
        response = self.client.patch(
            f"{PREFIX}/accounts/{self.unit.id}",
            headers=self.bearer("unit@example.com"),
            json={"status": "active"},
        )
        self.assertEqual(response.status_code, 403)

    def test_get_account(self) -> None:
        own = self.client.get(
            f"{PREFIX}/accounts/{self.unit.id}", headers=self.bearer("unit@example.com")
        )
        self.assertEqual(own.status_code, 200)
        other = self.client.get(
            f"{PREFIX}/accounts/{self.admin.id}", headers=self.bearer("unit@example.com")
        )
        self.assertEqual(other.status_code, 403)

    def test_deactivate(self) -> None:
        response = self.client.delete(
            f"{PREFIX}/accounts/{self.unit.id}", headers=self.bearer("admin@example.com")
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "inactive")
        refused = self.login("unit@example.com")
        self.assertEqual(refused.status_code, 401)
        self.assertEqual(refused.json()["detail"], "Account is inactive.")

    def test_admin_reset_password(self) -> None:
        url = f"{PREFIX}/accounts/{self.unit.id}/reset-password"
        self.assertEqual(
            self.client.post(url, headers=self.bearer("unit@example.com")).status_code, 403
        )
        response = self.client.post(url, headers=self.bearer("admin@example.com"))
        self.assertEqual(response.status_code, 200, response.text)
        temporary = response.json()["temporary_password"]
        self.assertEqual(self.login("unit@example.com").status_code, 401)
        self.assertEqual(self.login("unit@example.com", temporary).status_code, 200)


class TestStoreUnavailable(ApiTestCase):
    def test_operational_error_is_retryable_503(self) -> None:
        broken = MagicMock()
        broken.query.side_effect = OperationalError("SELECT 1", {}, Exception("connection refused"))

        def _broken_db():
            yield broken

        app.dependency_overrides[get_db] = _broken_db
        response = self.login("unit@example.com")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json()["code"], "service_unavailable")
        self.assertIn("Retry-After", response.headers)


class TestHealth(ApiTestCase):
    def test_health_reports_store(self) -> None:
        response = self.client.get(f"{PREFIX}/health/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["database"], "connected")
        self.assertEqual(response.json()["status"], "ok")
