"""
Block Catalog

In-memory map from block-type id to its definition. Registering an id that
already exists replaces the earlier definition.
"""

import itertools
import logging
from typing import Dict, List, Optional, Tuple

from blockpress.blocks.base import BlockDefinition


class BlockCatalog:
    """
    Registry of block definitions.

    Lookups never raise: an unknown id yields ``None``. Listing follows
    registration order, where an overwrite counts as a fresh registration.
    """

    def __init__(self):
        self._definitions: Dict[str, Tuple[int, BlockDefinition, Optional[str]]] = {}
        self._sequence = itertools.count()
        self.logger = logging.getLogger("blockpress.blocks.catalog")

    def register(self, definition: BlockDefinition, origin: Optional[str] = None) -> None:
        """
        Insert or overwrite a definition.

        Args:
            definition: Block definition to store
            origin: Name of the plugin contributing the definition
        """
        previous = self._definitions.get(definition.id)
        if previous is not None:
            self.logger.info(
                f"Block '{definition.id}' from {origin or 'unknown'} replaces "
                f"definition from {previous[2] or 'unknown'}"
            )

        self._definitions[definition.id] = (next(self._sequence), definition, origin)
        self.logger.debug(f"Registered block: {definition.id}")

    def get(self, block_id: str) -> Optional[BlockDefinition]:
        entry = self._definitions.get(block_id)
        return entry[1] if entry else None

    def origin_of(self, block_id: str) -> Optional[str]:
        """Get the plugin that contributed the current definition."""
        entry = self._definitions.get(block_id)
        return entry[2] if entry else None

    def list(self) -> List[BlockDefinition]:
        """Get all definitions in registration order (ties broken by id)."""
        entries = sorted(self._definitions.values(), key=lambda e: (e[0], e[1].id))
        return [definition for _, definition, _ in entries]

    def remove_origin(self, origin: str) -> List[str]:
        """
        Drop every definition currently owned by a plugin.

        Used when a plugin re-registers under the same name so its old
        contributions do not linger.

        Returns:
            Ids of the removed definitions
        """
        removed = [block_id for block_id, entry in self._definitions.items() if entry[2] == origin]
        for block_id in removed:
            del self._definitions[block_id]

        if removed:
            self.logger.debug(f"Removed {len(removed)} block(s) owned by {origin}")
        return removed

    def __contains__(self, block_id: object) -> bool:
        return block_id in self._definitions

    def __len__(self) -> int:
        return len(self._definitions)
