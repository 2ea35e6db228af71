"""
Block Definitions

A block definition describes one pluggable content unit type: its id, the
name shown in the editor, the properties a fresh element starts with, and the
capability flags that govern how elements of the type may be composed.
"""

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Type

from pydantic import BaseModel, ValidationError


# Capability flags
CONTAINER = "container"      # Elements may hold child elements
TEXT = "text"                # Carries editable text
MEDIA = "media"              # References external media
INTERACTIVE = "interactive"  # Links or actions

KNOWN_CAPABILITIES = frozenset({CONTAINER, TEXT, MEDIA, INTERACTIVE})


def _freeze(properties: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(copy.deepcopy(dict(properties or {})))


@dataclass(frozen=True)
class BlockDefinition:
    """
    Immutable metadata for a block type.

    ``schema`` is an optional pydantic model used to check an element's
    properties where they are read; blocks without one accept any bag.
    """
    id: str
    display_name: str = ""
    default_properties: Mapping[str, Any] = field(default_factory=dict)
    capabilities: FrozenSet[str] = field(default_factory=frozenset)
    schema: Optional[Type[BaseModel]] = None

    def __post_init__(self):
        if not isinstance(self.id, str) or not self.id.strip():
            raise ValueError("Block definition requires a non-empty id")
        object.__setattr__(self, 'default_properties', _freeze(self.default_properties))
        object.__setattr__(self, 'capabilities', frozenset(self.capabilities))
        if not self.display_name:
            object.__setattr__(self, 'display_name', self.id.replace('-', ' ').title())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'BlockDefinition':
        """
        Build a definition from a plugin bundle entry.

        Accepts both ``display_name``/``default_properties`` and the
        camelCase keys used by static JSON bundles.

        Raises:
            ValueError: If the entry has no usable id
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Block entry must be a mapping, got {type(data).__name__}")

        return cls(
            id=data.get('id'),
            display_name=data.get('display_name', data.get('displayName', '')),
            default_properties=data.get('default_properties', data.get('defaultProperties', {})),
            capabilities=frozenset(data.get('capabilities', ())),
            schema=data.get('schema'),
        )

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    @property
    def is_container(self) -> bool:
        return CONTAINER in self.capabilities

    def defaults(self) -> Dict[str, Any]:
        """Return a mutable copy of the default property bag."""
        return copy.deepcopy(dict(self.default_properties))

    def validate_properties(self, properties: Mapping[str, Any]) -> List[str]:
        """
        Check a property bag against the block schema.

        Returns:
            List of problems, empty when the bag is acceptable
        """
        if self.schema is None:
            return []

        try:
            self.schema.model_validate(dict(properties))
        except ValidationError as e:
            return [
                f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
                for error in e.errors()
            ]
        return []

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'display_name': self.display_name,
            'default_properties': self.defaults(),
            'capabilities': sorted(self.capabilities),
            'schema': self.schema.__name__ if self.schema else None,
        }


def unknown_capabilities(capabilities: Iterable[str]) -> List[str]:
    """Return capability flags that no part of the engine interprets."""
    return sorted(set(capabilities) - KNOWN_CAPABILITIES)
