from __future__ import annotations

from recordmapper.compiler import compile_schema
from recordmapper.domain.models import JoinedField
from recordmapper.projection import (
    ACTIONABLE,
    action_sources,
    defined_keys,
    join_column,
    resolve_action_projection,
    resolve_view_projection,
)


def test_default_view_projection_selects_all_viewable_and_system_keys(post_config):
    definition = compile_schema(post_config)

    projection = resolve_view_projection(definition)

    assert list(projection.viewable) == ["title", "author", "id", "created_at", "updated_at"]
    assert projection.viewable["author"] == JoinedField(alias="author", field="id")
    assert projection.viewable["title"] == "title"
    assert projection.pointers == {}


def test_requested_keys_are_intersected_and_dotted_keys_routed(post_config):
    definition = compile_schema(post_config)

    projection = resolve_view_projection(
        definition,
        ["title", "secret", "author.name", "author.email", "author.name", "editor.name"],
    )

    assert list(projection.viewable) == [
        "title",
        "id",
        "created_at",
        "updated_at",
        "author.name",
        "author.email",
    ]
    assert projection.viewable["author.name"] == JoinedField(alias="author", field="name")
    assert projection.pointers == {"author": ("name", "email")}


def test_deleted_at_is_never_viewable(post_config):
    definition = compile_schema(post_config)

    projection = resolve_view_projection(definition, ["deleted_at", "title"])

    assert "deleted_at" not in projection.viewable


def test_action_projection_keeps_supplied_order_and_drops_system_keys(post_config):
    definition = compile_schema(post_config)

    keys = resolve_action_projection(
        definition,
        {"author": 1, "id": 5, "created_at": "x", "unknown": 2, "title": "Hi"},
    )

    assert keys == ["author", "title"]


def test_actionable_references_write_to_their_join_column():
    definition = compile_schema(
        {
            "className": "Post",
            "keys": {
                "viewable": ["author", "editor"],
                "actionable": ["author", "editor"],
                "pointers": {
                    "author": {"className": "User"},
                    "editor": {"className": "User", "via": "edited_by"},
                },
            },
        }
    )

    assert join_column(definition, "author") == "author_id"
    assert join_column(definition, "editor") == "edited_by"
    assert defined_keys(definition, ACTIONABLE).aliased == {"author": "author_id", "editor": "edited_by"}
    assert action_sources(definition) == {"author": "author_id", "editor": "edited_by"}
