"""
Unit tests for authentication service.
Tests password hashing, JWT tokens and the date/time helpers used by booking.
"""
from datetime import date, time, timedelta

import pytest

from teamtango.services import auth_service
from teamtango.utils import datetime_utils


class TestPasswordHashing:
    """Tests for password hashing and verification."""

    def test_hash_password_is_salted(self):
        hash1 = auth_service.hash_password("test_password_123")
        hash2 = auth_service.hash_password("test_password_123")

        assert hash1 != hash2
        assert auth_service.verify_password("test_password_123", hash1)
        assert auth_service.verify_password("test_password_123", hash2)

    def test_verify_password_incorrect(self):
        password_hash = auth_service.hash_password("test_password_123")
        assert auth_service.verify_password("wrong_password", password_hash) is False

    def test_verify_password_empty(self):
        password_hash = auth_service.hash_password("test_password_123")
        assert auth_service.verify_password("", password_hash) is False

    def test_verify_password_against_garbage_hash(self):
        """A corrupt stored hash fails verification instead of raising."""
        assert auth_service.verify_password("test_password_123", "not-a-bcrypt-hash") is False


class TestJWTTokens:
    """Tests for JWT token creation and verification."""

    def test_round_trip_claims(self):
        token = auth_service.create_access_token(
            {"user_id": 7, "email": "asha@example.com", "role_id": 1, "role_name": "Player"}
        )
        payload = auth_service.verify_token(token)

        assert payload["user_id"] == 7
        assert payload["role_name"] == "Player"
        assert "exp" in payload

    def test_expired_token_is_rejected(self):
        token = auth_service.create_access_token({"user_id": 1}, expires_delta=timedelta(seconds=-5))
        assert auth_service.verify_token(token) is None

    def test_tampered_token_is_rejected(self):
        token = auth_service.create_access_token({"user_id": 1})
        head, body, signature = token.split(".")
        tampered = ".".join([head, body, signature[::-1]])
        assert auth_service.verify_token(tampered) is None

    def test_garbage_token_is_rejected(self):
        assert auth_service.verify_token("not.a.token") is None


class TestDatetimeUtils:
    def test_parse_time_formats(self):
        assert datetime_utils.parse_time("18:30") == time(18, 30)
        assert datetime_utils.parse_time("06:05:09") == time(6, 5, 9)
        assert datetime_utils.parse_time(time(9, 0)) == time(9, 0)

    def test_parse_time_rejects_garbage(self):
        with pytest.raises(ValueError):
            datetime_utils.parse_time("6pm")

    def test_parse_date(self):
        assert datetime_utils.parse_date("2026-01-21") == date(2026, 1, 21)
        with pytest.raises(ValueError):
            datetime_utils.parse_date("21/01/2026")

    def test_hours_between(self):
        assert datetime_utils.hours_between(time(18, 0), time(19, 30)) == 1.5

    def test_is_in_future(self):
        today = datetime_utils.local_now().date()
        assert datetime_utils.is_in_future(today + timedelta(days=1), time(6, 0))
        assert not datetime_utils.is_in_future(today - timedelta(days=1), time(23, 0))
