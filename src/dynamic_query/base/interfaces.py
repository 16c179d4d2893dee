# src/dynamic_query/base/interfaces.py

from abc import ABC, abstractmethod
from logging import LoggerAdapter
from typing import Any, Dict, Iterator, List, Optional

from dynamic_query.base.exceptions import UnknownModelError
from dynamic_query.base.query import FindManyQuery
from dynamic_query.base.schema import SchemaRegistry


class Repository(ABC):
    """
    Read interface over one entity type of a data store.

    Implementations execute store-native query specs as produced by
    QueryBuilder: nested where clauses, skip/take, orderBy and select trees.
    """

    @property
    @abstractmethod
    def entity_name(self) -> str:
        """The schema model name this repository serves."""
        pass

    @abstractmethod
    async def find_many(
        self, query: FindManyQuery, logger: LoggerAdapter
    ) -> List[Dict[str, Any]]:
        """
        Return the records matching ``query.where`` after sorting, paging and
        projection.

        Args:
            query: The assembled query spec.
            logger: Logger adapter for recording operations.
        """
        pass

    @abstractmethod
    async def find_first(
        self,
        where: Dict[str, Any],
        logger: LoggerAdapter,
        select: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Return the first record matching ``where``, or None.

        Args:
            where: Store-native where clause.
            logger: Logger adapter for recording operations.
            select: Optional selection tree.
        """
        pass

    @abstractmethod
    async def count(
        self, logger: LoggerAdapter, where: Optional[Dict[str, Any]] = None
    ) -> int:
        """Count records matching ``where`` (all records when None)."""
        pass

    @abstractmethod
    async def aggregate(
        self, args: Dict[str, Any], logger: LoggerAdapter
    ) -> Dict[str, Any]:
        """
        Compute aggregates over the records matching ``args["where"]``.

        Args:
            args: ``where`` plus any of ``_count``, ``_min``, ``_max``,
                ``_sum``, ``_avg``, each mapping field names to True.
            logger: Logger adapter for recording operations.
        """
        pass


class RepositoryRegistry:
    """
    Explicit mapping from schema model name to its repository.

    Only names defined in the schema can be registered, and lookups of unknown
    names fail with UnknownModelError instead of a silent miss.
    """

    def __init__(self, schema: SchemaRegistry):
        self._schema = schema
        self._repositories: Dict[str, Repository] = {}

    def register(self, repository: Repository) -> Repository:
        name = repository.entity_name
        if not self._schema.has_model(name):
            raise UnknownModelError(
                f'Cannot register repository for "{name}": not a model in the schema',
                value=name,
            )
        self._repositories[name] = repository
        return repository

    def get(self, entity: str) -> Repository:
        try:
            return self._repositories[entity]
        except KeyError:
            raise UnknownModelError(
                f'No repository registered for entity "{entity}"', value=entity
            ) from None

    def __contains__(self, entity: object) -> bool:
        return entity in self._repositories

    def __iter__(self) -> Iterator[str]:
        return iter(self._repositories)
