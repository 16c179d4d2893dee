# src/dynamic_query/service.py
import asyncio
from logging import LoggerAdapter
from typing import Any, Dict, Mapping, Optional, Sequence

from dynamic_query.base.builder import QueryBuilder
from dynamic_query.base.exceptions import ObjectNotFoundException
from dynamic_query.base.interfaces import RepositoryRegistry
from dynamic_query.base.params import QueryParams, build_pagination
from dynamic_query.base.query import get_nested_fields
from dynamic_query.base.utils import group_data_by_field


def resource_key(entity: str) -> str:
    """``Person`` -> ``person``, ``SystemLog`` -> ``systemLog``."""
    return entity[:1].lower() + entity[1:]


class QueryService:
    """
    Runs list and get-by-id requests end to end: parameter validation, where
    clause and query assembly through the builder, then the entity's
    repository.
    """

    def __init__(self, builder: QueryBuilder, repositories: RepositoryRegistry):
        self.builder = builder
        self.repositories = repositories

    async def get_all(
        self,
        entity: str,
        raw_params: Mapping[str, Any],
        logger: LoggerAdapter,
        search_fields: Optional[Sequence[str]] = None,
    ) -> Dict[str, Any]:
        """
        Returns a response body with the records (``document``), the total
        (``count``), pagination metadata (``pagination``) and the grouping
        field (``groupedBy``) as requested.
        """
        repository = self.repositories.get(entity)
        params = QueryParams.from_query(raw_params, self.builder.settings)
        logger.info(
            f"Getting all {entity}, page: {params.page}, limit: {params.limit}, "
            f"query: {params.query}, order: {params.order}, filter: {params.filter}"
        )

        where = self.builder.build_where(
            entity, params.filter, params.query, search_fields
        )
        query = self.builder.build_find_many_query(
            entity,
            where,
            params.skip,
            params.limit,
            params.order,
            params.sort,
            params.fields,
        )

        needs_total = params.count or params.pagination
        records, total = await asyncio.gather(
            repository.find_many(query, logger) if params.document else _nothing([]),
            repository.count(logger, where) if needs_total else _nothing(0),
        )
        logger.info(f"Retrieved {len(records)} {entity} record(s)")

        response: Dict[str, Any] = {}
        if params.document:
            if params.group_by:
                response[resource_key(entity)] = group_data_by_field(records, params.group_by)
            else:
                response[resource_key(entity)] = records
        if params.count:
            response["count"] = total
        if params.pagination:
            response["pagination"] = build_pagination(total, params.page, params.limit)
        if params.group_by:
            response["groupedBy"] = params.group_by
        return response

    async def get_by_id(
        self,
        entity: str,
        id: Any,
        logger: LoggerAdapter,
        fields: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Raises:
            ObjectNotFoundException: If no record has this id.
        """
        repository = self.repositories.get(entity)
        id_field = self.builder.settings.id_field
        select = get_nested_fields(fields, id_field)
        logger.info(f"Getting {entity} by id: {id}")
        record = await repository.find_first({id_field: id}, logger, select=select)
        if record is None:
            logger.error(f"{entity} not found: {id}")
            raise ObjectNotFoundException(f"{entity} with ID {id} not found")
        return record


async def _nothing(value: Any) -> Any:
    return value
