"""
Schema registry.

Populated once at startup with compiled definitions and then only read. The
registry is passed to whatever needs it (routing, tooling) instead of living in
module-level state.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from recordmapper.collaborators import ActionQueryFactory, StorageProvider, ViewQueryFactory
from recordmapper.compiler import compile_schema
from recordmapper.domain.models import ModelDefinition
from recordmapper.errors import ForbiddenOperation
from recordmapper.model import Model


class SchemaRegistry:
    def __init__(self, storage: Optional[StorageProvider] = None) -> None:
        self._storage = storage
        self._definitions: Dict[str, ModelDefinition] = {}

    def register(self, config: Mapping[str, Any]) -> ModelDefinition:
        """
        Compile `config` and add it to the registry.

        Raises
        ------
        ForbiddenOperation
            If a model with the same class name is already registered.
        """
        definition = compile_schema(config, storage=self._storage)
        if definition.class_name in self._definitions:
            raise ForbiddenOperation(f"Model `{definition.class_name}` is already registered")
        self._definitions[definition.class_name] = definition
        return definition

    def get(self, class_name: str) -> ModelDefinition:
        try:
            return self._definitions[class_name]
        except KeyError:
            raise KeyError(f"Unknown model `{class_name}`") from None

    def bind(
        self,
        class_name: str,
        view_query: ViewQueryFactory,
        action_query: ActionQueryFactory,
    ) -> Model:
        return Model(self.get(class_name), view_query=view_query, action_query=action_query)

    def unresolved_references(self) -> List[Tuple[str, str, str]]:
        """(model, field, target) for every reference whose target is not registered."""
        missing = []
        for definition in self._definitions.values():
            for name, pointer in definition.pointers.items():
                if pointer.class_name not in self._definitions:
                    missing.append((definition.class_name, name, pointer.class_name))
        return missing

    def names(self) -> List[str]:
        return sorted(self._definitions)

    def __contains__(self, class_name: object) -> bool:
        return class_name in self._definitions

    def __iter__(self) -> Iterator[ModelDefinition]:
        return iter(list(self._definitions.values()))

    def __len__(self) -> int:
        return len(self._definitions)


__all__ = ["SchemaRegistry"]
