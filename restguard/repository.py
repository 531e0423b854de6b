"""
Persistence collaborator interface and an in-memory implementation.
"""

import copy
import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .exceptions import ResourceAlreadyExistsError, ResourceNotFoundError

logger = logging.getLogger(__name__)

Entity = Dict[str, Any]

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


class Repository(ABC):
    """Storage-agnostic entity repository.

    Implementations may suspend on I/O, so every operation is a coroutine.
    """

    @abstractmethod
    async def find(self, entity_id: str) -> Entity:
        """Return the entity with ``entity_id``.

        Raises:
            ResourceNotFoundError: If no such entity exists
        """
        pass

    @abstractmethod
    async def create(self, data: Mapping[str, Any]) -> Entity:
        """Store a new entity and return it with its id.

        Raises:
            ResourceAlreadyExistsError: On a uniqueness conflict
        """
        pass

    @abstractmethod
    async def list(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Entity]:
        """Return entities whose fields equal every value in ``filter``."""
        pass


class InMemoryRepository(Repository):
    """Dict-backed repository for tests, examples and single-process demos.

    Entities are copied in and out so callers can never mutate stored state.
    """

    def __init__(self, resource: str = "resource", unique_fields: Sequence[str] = (), id_field: str = "id"):
        self.resource = resource
        self.unique_fields = tuple(unique_fields)
        self.id_field = id_field
        self._entities: Dict[str, Entity] = {}

    async def find(self, entity_id: str) -> Entity:
        entity = self._entities.get(str(entity_id))
        if entity is None:
            raise ResourceNotFoundError(f"{self.resource} '{entity_id}' was not found")
        return copy.deepcopy(entity)

    async def create(self, data: Mapping[str, Any]) -> Entity:
        entity = copy.deepcopy(dict(data))
        entity_id = str(entity.get(self.id_field) or uuid.uuid4().hex)
        entity[self.id_field] = entity_id

        if entity_id in self._entities:
            raise ResourceAlreadyExistsError(f"{self.resource} '{entity_id}' already exists")
        for field_name in self.unique_fields:
            value = entity.get(field_name)
            if value is not None and any(e.get(field_name) == value for e in self._entities.values()):
                raise ResourceAlreadyExistsError(f"{self.resource} with {field_name} '{value}' already exists")

        self._entities[entity_id] = entity
        logger.debug(f"Created {self.resource} {entity_id}")
        return copy.deepcopy(entity)

    async def list(
        self,
        filter: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Entity]:
        filter = filter or {}
        matches = [
            entity for entity in self._entities.values()
            if all(entity.get(k) == v for k, v in filter.items())
        ]
        limit = DEFAULT_PAGE_LIMIT if limit is None else max(0, min(limit, MAX_PAGE_LIMIT))
        offset = max(0, offset)
        return [copy.deepcopy(e) for e in matches[offset:offset + limit]]

    async def find_by(self, field_name: str, value: Any) -> Optional[Entity]:
        """Return the first entity whose ``field_name`` equals ``value``, or None."""
        for entity in self._entities.values():
            if entity.get(field_name) == value:
                return copy.deepcopy(entity)
        return None

    def __len__(self) -> int:
        return len(self._entities)
