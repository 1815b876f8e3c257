"""
Abstract base class for query-type normalizers.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterator, List, Sequence, Tuple
import logging

from core.exceptions import InvalidPayloadError, NormalizationError
from models.base import QueryType, TableSchema
from schemas.records import NamedTable, ResponseRecord

logger = logging.getLogger(__name__)

Rows = Dict[str, List[Dict[str, Any]]]


def nodes(connection: Any) -> Iterator[Dict[str, Any]]:
    """Non-null elements of a GraphQL connection ({"nodes": [...]}) or list"""
    if isinstance(connection, dict):
        items = connection.get("nodes")
    else:
        items = connection
    if not isinstance(items, list):
        return
    for item in items:
        if isinstance(item, dict):
            yield item


def composite_id(parent_id: str, *parts: Any) -> str:
    """Parent-scoped key for entities without a native id"""
    return "_".join(str(p) for p in (parent_id, *parts))


def node_id(node: Dict[str, Any], parent_id: str, *parts: Any) -> str:
    """Native id of a node, or a composite key under its parent"""
    return node.get("id") or composite_id(parent_id, *parts)


class QueryNormalizer(ABC):
    """
    Pure mapping from a batch of one query type to its fixed set of tables.

    Responsibilities:
    - Validate the batch (single query type, object root payloads)
    - Drop records whose root entity is null (not found)
    - Collapse duplicate root entities (last occurrence wins)
    - Always return every table of the query type, possibly empty

    Subclasses implement extract() for one root entity.
    """

    query_type: QueryType
    root_field: str = "repository"
    tables: Tuple[TableSchema, ...] = ()

    @abstractmethod
    def extract(self, entity: Dict[str, Any], entity_id: str, rows: Rows):
        """Append the rows derived from one root entity"""
        pass

    def normalize(self, records: Sequence[ResponseRecord]) -> Dict[str, NamedTable]:
        """
        Normalize a batch into named tables.

        Returns:
            Table name to NamedTable, in the fixed order of self.tables

        Raises:
            InvalidPayloadError: If a root payload is not an object
            NormalizationError: If the batch mixes query types
        """
        rows: Rows = {table.name: [] for table in self.tables}

        for entity_id, entity in self.root_entities(records).items():
            self.extract(entity, entity_id, rows)

        return {
            table.name: NamedTable(
                name=table.name,
                columns=list(table.column_names),
                rows=[self._project(table, row) for row in rows[table.name]],
                description=table.description,
            )
            for table in self.tables
        }

    def root_entities(self, records: Sequence[ResponseRecord]) -> Dict[str, Dict[str, Any]]:
        """Found root entities keyed by id, in order of first appearance"""
        entities: Dict[str, Dict[str, Any]] = {}
        not_found = 0

        for index, record in enumerate(records):
            if record.query_type != self.query_type.value:
                raise NormalizationError(
                    "Batch mixes query types",
                    context={
                        "expected": self.query_type.value,
                        "found": record.query_type,
                        "record_index": index
                    }
                )

            entity = self._root_entity(record, index)
            if entity is None:
                not_found += 1
                logger.debug(f"No {self.root_field} for {record.entity_key}, skipping")
                continue

            entity_id = entity.get("id") or entity.get("nameWithOwner") or record.entity_key
            if entity_id in entities:
                logger.debug(f"Duplicate {self.root_field} {entity_id} in batch, keeping latest")
            entities[entity_id] = entity

        if not_found:
            logger.info(f"{not_found} of {len(records)} {self.query_type.value} records had no {self.root_field}")
        return entities

    def _root_entity(self, record: ResponseRecord, index: int):
        payload = record.payload
        if not isinstance(payload, dict):
            raise InvalidPayloadError(
                "Root payload is not an object",
                context={
                    "query_type": record.query_type,
                    "payload_type": type(payload).__name__,
                    "record_index": index
                }
            )

        entity = payload.get(self.root_field)
        if entity is not None and not isinstance(entity, dict):
            raise InvalidPayloadError(
                f"Root entity '{self.root_field}' is not an object",
                context={
                    "query_type": record.query_type,
                    "payload_type": type(entity).__name__,
                    "record_index": index
                }
            )
        return entity

    @staticmethod
    def _project(table: TableSchema, row: Dict[str, Any]) -> Dict[str, Any]:
        return {column: row.get(column) for column in table.column_names}

    @staticmethod
    def stats(tables: Dict[str, NamedTable]) -> str:
        """One line per table, for logging"""
        return "\n".join(f"  {name}: {table.row_count} rows" for name, table in tables.items())
