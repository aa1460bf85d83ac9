from __future__ import annotations

import pytest

from recordmapper.domain.models import FieldKind
from recordmapper.domain.values import (
    Attachment,
    Increment,
    JsonAppend,
    JsonSet,
    Plain,
    Reference,
    coerce,
    unwrap,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"kind": "Reference", "className": "User", "id": 7}, Reference("User", 7)),
        ({"kind": "File", "key": "avatars/a.png"}, Attachment("avatars/a.png")),
        ({"kind": "Increment", "value": 2}, Increment(2)),
        ({"kind": "JsonAppend", "path": "tags", "value": "new"}, JsonAppend("tags", "new")),
        ({"kind": "JsonSet", "path": "a.b", "value": 1}, JsonSet("a.b", 1)),
    ],
)
def test_tagged_wire_objects_become_variants(raw, expected):
    assert coerce(raw) == expected


def test_untagged_values_are_plain():
    assert coerce("Hi") == Plain("Hi")
    assert coerce({"colour": "red"}) == Plain({"colour": "red"})
    assert coerce({"kind": "Mystery", "x": 1}) == Plain({"kind": "Mystery", "x": 1})


def test_coerce_keeps_already_tagged_values():
    reference = Reference("User", 1)
    assert coerce(reference) is reference


def test_unwrap_only_strips_plain_values():
    assert unwrap(Plain(5)) == 5
    assert unwrap(Increment(1)) == Increment(1)


def test_structured_variants_name_the_kind_that_accepts_them():
    assert Plain.accepted_by is None
    assert Reference.accepted_by is FieldKind.REFERENCE
    assert Attachment.accepted_by is FieldKind.ATTACHMENT
    assert Increment.accepted_by is FieldKind.INTEGER
    assert JsonSet.accepted_by is JsonAppend.accepted_by is FieldKind.JSON


def test_reference_display_object():
    assert Reference("User", 7).to_display() == {"kind": "Reference", "className": "User", "id": 7}
