from __future__ import annotations

from recordmapper.compiler import compile_schema
from recordmapper.domain.constraints import Comparison
from recordmapper.domain.models import JoinSpec
from recordmapper.joins import plan_joins


def test_one_join_per_reference_in_declaration_order():
    definition = compile_schema(
        {
            "className": "Task",
            "keys": {
                "viewable": ["company", "owner", "reviewer"],
                "pointers": {
                    "company": {"className": "Company"},
                    "owner": {"className": "User", "via": "company.owner_id"},
                    "reviewer": {"className": "User", "where": {"role": {"eq": "lead"}}},
                },
            },
        }
    )

    joins = plan_joins(definition)

    assert [join.alias for join in joins] == ["company", "owner", "reviewer"]
    assert joins[0] == JoinSpec(class_name="Company", alias="company", via="company_id", to="id")
    assert joins[1].via == "company.owner_id"
    assert joins[2].where.clauses == (Comparison("role", "eq", "lead"),)


def test_models_without_references_have_no_joins(user_config):
    assert plan_joins(compile_schema(user_config)) == []
