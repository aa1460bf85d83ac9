from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from recordmapper.domain.models import ModelDefinition
from recordmapper.domain.values import Attachment, Increment, IncrementOp, JsonAppend, JsonPatchOp, JsonSet, Reference
from recordmapper.fields import formatters, parsers, presave, validation
from recordmapper.keymap import KeyMap, Request
from recordmapper.pipeline import run_before_save


class TestValidation:
    def test_fixed_string_bounds(self):
        check = validation.fixed_string(2, 4)

        assert check("abc", "name") is None
        assert check("a", "name") == (
            "name must be greater than or equal to 2 characters, and less than or equal to 4 characters"
        )
        assert check("abcde", "name") is not None
        assert check(12, "name") is not None

    def test_fixed_string_without_maximum(self):
        assert validation.fixed_string(1)("x" * 500, "bio") is None
        assert validation.fixed_string(1)("", "bio") == "bio must be greater than or equal to 1 characters"

    def test_email(self):
        assert validation.email("ann@example.com", "email") is None
        assert validation.email("not-an-email", "email") == "email is not a valid email address"

    def test_string_validators_let_none_pass(self):
        assert validation.fixed_string(1, 10)(None, "title") is None
        assert validation.password(8)(None, "password") is None
        assert validation.email(None, "email") is None

    def test_integer_accepts_increments_and_integral_values(self):
        assert validation.integer(Increment(3), "views") is None
        assert validation.integer("4", "views") is None
        assert validation.integer(None, "views") is None
        assert validation.integer(1.5, "views") == "views must be an integer or an increment object"
        assert validation.integer(True, "views") is not None

    def test_positive_integer(self):
        assert validation.positive_integer(0, "stock") is None
        assert validation.positive_integer(-1, "stock") == "stock must be a positive integer"

    def test_float(self):
        assert validation.float_("1.25", "price") is None
        assert validation.float_("abc", "price") == "price must be a float value"

    def test_reference_checks_the_target_class(self):
        check = validation.reference("User")

        assert check(Reference("User", 1), "author") is None
        assert check(None, "author") is None
        assert check(Reference("Team", 1), "author") == "author must be a reference to `User`"
        assert check(1, "author") == "author must be a reference to `User`"

    def test_attachment(self):
        assert validation.attachment(Attachment("a.png"), "cover") is None
        assert validation.attachment("a.png", "cover") == "cover must be a file"


class TestParsers:
    def test_no_spaces(self):
        assert parsers.no_spaces("a b  c") == "abc"

    def test_password_hashes_through_security(self, security):
        assert parsers.password(security, cost=4)("secret") == "hashed:4:secret"
        assert security.calls == [("secret", 4)]

    def test_integer(self):
        assert parsers.integer("3") == 3
        assert parsers.integer(4.0) == 4
        assert parsers.integer(Increment(2)) == IncrementOp(2)

    def test_float_rounds_half_up(self):
        assert parsers.float_(2)("1.005") == Decimal("1.01")
        assert parsers.float_(0)(2.5) == Decimal("3")

    def test_date_normalizes_to_utc(self):
        parsed = parsers.date("2024-01-02T03:04:05.123+02:00")

        assert parsed == datetime(2024, 1, 2, 1, 4, 5, tzinfo=timezone.utc)
        assert parsers.date("") is None

    def test_date_accepts_zulu_suffix(self):
        assert parsers.date("2024-01-02T03:04:05Z") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

    def test_reference_and_attachment_reduce_to_identifiers(self):
        assert parsers.reference(Reference("User", 9)) == 9
        assert parsers.reference({"kind": "Reference", "className": "User", "id": 9}) == 9
        assert parsers.attachment(Attachment("a.png")) == "a.png"

    def test_object_and_json(self):
        assert parsers.object_({"a": 1}) == '{"a": 1}'
        assert parsers.json([1, 2]) == "[1, 2]"
        assert parsers.json(JsonSet("a.b", 1)) == JsonPatchOp("set", "a.b", "1")
        assert parsers.json(JsonAppend("tags", "x")) == JsonPatchOp("append", "tags", '"x"')


class TestFormatters:
    def test_integer_and_float(self):
        assert formatters.integer("5") == 5
        assert formatters.integer(IncrementOp(1)) is None
        assert formatters.float_(2)(Decimal("1.5")) == "1.50"

    def test_date_is_iso_utc(self):
        moment = datetime(2024, 1, 2, 5, 4, 5, 999, tzinfo=timezone(timedelta(hours=2)))

        assert formatters.date(moment) == "2024-01-02T03:04:05+00:00"
        assert formatters.date(None) is None

    def test_reference_display(self):
        assert formatters.reference("User")(3) == {"kind": "Reference", "className": "User", "id": 3}
        assert formatters.reference("User")(None) is None

    def test_attachment_uses_the_definition_storage(self, storage):
        definition = ModelDefinition(class_name="Profile", source="profiles", storage=storage)

        assert formatters.attachment("a.png", definition) == {
            "kind": "File",
            "key": "a.png",
            "url": "https://files.test/a.png",
        }
        assert formatters.attachment("a.png") == {"kind": "File", "key": "a.png", "url": None}

    def test_json(self):
        assert formatters.json('{"a": 1}') == {"a": 1}
        assert formatters.json(JsonPatchOp("set", "a", "1")) is None
        assert formatters.object_(b"[1]") == [1]


class TestSessionHook:
    @pytest.mark.asyncio
    async def test_new_sessions_get_a_token_and_expiry(self):
        request = Request(keys=KeyMap(), is_new=True)

        await run_before_save(presave.session(duration_days=7), request)

        token = request.keys.get("session_token")
        expires_in = request.keys.get("revoked_at") - datetime.now(timezone.utc)
        assert isinstance(token, str) and len(token) >= 32
        assert timedelta(days=6, hours=23) < expires_in <= timedelta(days=7)

    @pytest.mark.asyncio
    async def test_existing_sessions_are_left_alone(self):
        request = Request(keys=KeyMap({"device": "ios"}))

        await run_before_save(presave.session(), request)

        assert request.keys.copy() == {"device": "ios"}
