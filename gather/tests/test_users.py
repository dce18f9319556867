"""
gather/tests/test_users.py
Accounts, tokens, identity and location resolvers, profile.
"""

from datetime import timedelta

import jwt
import pytest

from gather.core.auth import create_token, decode_token, parse_location, resolve_actor
from gather.core.errors import AuthenticationError, ValidationError
from gather.models.location import Coordinate
from gather.tests.helpers import LATER, LISBON, NOW


class TestRegisterAndLogin:
    def test_register_returns_token_and_view(self, services, settings):
        result = services.users.register("Alice", "  Alice@Example.COM ", "secret123", now=NOW)
        assert result.user.email == "alice@example.com"
        assert result.user.rating == 5.0
        assert result.user.notifications is True
        assert decode_token(result.token, settings) == result.user.id
        assert "password_hash" not in result.user.model_dump()

    def test_password_is_hashed(self, services):
        result = services.users.register("Alice", "alice@example.com", "secret123")
        stored = services.user_store.get(result.user.id)
        assert stored.password_hash != "secret123"

    def test_duplicate_email_rejected(self, services):
        services.users.register("Alice", "alice@example.com", "secret123")
        with pytest.raises(ValidationError):
            services.users.register("Other", "ALICE@example.com", "secret456")

    @pytest.mark.parametrize(
        "name,email,password",
        [("", "a@example.com", "secret123"), ("A", "not-an-email", "secret123"), ("A", "a@example.com", "short")],
    )
    def test_invalid_registration(self, services, name, email, password):
        with pytest.raises(ValidationError):
            services.users.register(name, email, password)

    def test_login(self, services, alice):
        result = services.users.login("ALICE@example.com", "secret123")
        assert result.user.id == alice.id

    @pytest.mark.parametrize("email,password", [("alice@example.com", "wrong"), ("nobody@example.com", "secret123")])
    def test_login_failures_are_identical(self, services, alice, email, password):
        with pytest.raises(AuthenticationError) as exc:
            services.users.login(email, password)
        assert str(exc.value) == "Invalid credentials"


class TestTokens:
    def test_no_expiry_by_default(self, settings):
        payload = jwt.decode(create_token("u1", settings), settings.TOKEN_SECRET, algorithms=["HS256"])
        assert payload["sub"] == "u1"
        assert "exp" not in payload

    def test_expired_token(self, settings):
        short = settings.model_copy(update={"TOKEN_TTL_HOURS": 1})
        token = create_token("u1", short, now=NOW - timedelta(hours=2))
        with pytest.raises(AuthenticationError):
            decode_token(token, short)

    def test_wrong_secret(self, settings):
        token = jwt.encode({"sub": "u1"}, "another-secret", algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_token(token, settings)

    def test_missing_sub(self, settings):
        token = jwt.encode({"foo": "bar"}, settings.TOKEN_SECRET, algorithm="HS256")
        with pytest.raises(AuthenticationError):
            decode_token(token, settings)


class TestResolveActor:
    def test_absent_header_is_anonymous(self, services, settings):
        assert resolve_actor(None, services.user_store, settings) is None

    def test_valid_token(self, services, settings, alice):
        actor = resolve_actor(f"Bearer {create_token(alice.id, settings)}", services.user_store, settings)
        assert actor.id == alice.id

    @pytest.mark.parametrize("header", ["", "Bearer ", "Token abc", "Bearer not.a.jwt", "bearer abc"])
    def test_malformed(self, services, settings, header):
        with pytest.raises(AuthenticationError) as exc:
            resolve_actor(header, services.user_store, settings)
        assert str(exc.value) == "Invalid token"

    def test_unknown_user(self, services, settings):
        with pytest.raises(AuthenticationError) as exc:
            resolve_actor(f"Bearer {create_token('ghost', settings)}", services.user_store, settings)
        assert str(exc.value) == "User not found"


class TestParseLocation:
    def test_parses(self):
        assert parse_location("38.7223,-9.1393") == Coordinate(latitude=38.7223, longitude=-9.1393)
        assert parse_location(" 1.5 , 2.5 ") == Coordinate(latitude=1.5, longitude=2.5)

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_absent(self, value):
        assert parse_location(value) is None

    @pytest.mark.parametrize("value", ["abc", "1", "1,2,3", "91,0", "0,181", "nan,0", "x,y"])
    def test_malformed(self, value):
        with pytest.raises(ValidationError):
            parse_location(value)


class TestProfile:
    def test_update_only_given_fields(self, services, alice):
        view = services.users.update_profile(alice, notifications=False, now=LATER)
        assert view.notifications is False
        assert view.name == "Alice"

        view = services.users.update_profile(services.user_store.get(alice.id), name="Ally", now=LATER)
        assert view.name == "Ally"
        assert view.notifications is False

    def test_noop_update_does_not_write(self, services, alice):
        services.users.update_profile(alice, name="Alice", notifications=True, now=LATER)
        assert services.user_store.get(alice.id).updated == alice.updated

    def test_blank_name_rejected(self, services, alice):
        with pytest.raises(ValidationError):
            services.users.update_profile(alice, name="  ")

    def test_profile_lists_owned_and_joined_plans(self, services, alice, bob, carol, make_plan):
        owned = make_plan(bob).id
        requested = make_plan(alice).id
        make_plan(carol)
        services.plans.request_join(requested, bob, now=NOW)

        profile = services.users.profile(bob, LISBON)
        assert profile.id == bob.id
        assert profile.email == "bob@example.com"
        assert {plan.id for plan in profile.plans} == {owned, requested}
        statuses = {plan.id: plan.status.value for plan in profile.plans}
        assert statuses == {owned: "joined", requested: "requested"}
        assert all(plan.meta.distance == 0.0 for plan in profile.plans)
