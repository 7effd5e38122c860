"""Document store implementations.

Provides both LanceDB (persistent) and in-memory storage options.
"""

import copy
import logging
import os
import re
import uuid
from pathlib import Path
from typing import Optional, Union

from ..errors import (
    CollectionExistsError,
    CollectionNotFoundError,
    DocumentNotFoundError,
    InvalidArgumentError,
    StoreFailureError,
)
from ..interfaces import BulkDeleteResult, IDocumentStore, SortOrder

logger = logging.getLogger(__name__)


def _sort_key(field_name: str):
    # Missing values sort before everything else
    return lambda doc: (doc.get(field_name) is not None, doc.get(field_name))


def _matches(doc: dict, filters: Optional[dict]) -> bool:
    if not filters:
        return True
    return all(doc.get(k) == v for k, v in filters.items())


def _check_paging(from_: int, size: int) -> None:
    if from_ < 0:
        raise InvalidArgumentError(f"from must be non-negative, got {from_}")
    if size < 0:
        raise InvalidArgumentError(f"size must be non-negative, got {size}")


class InMemoryDocumentStore(IDocumentStore):
    """In-process document store for testing and ephemeral deployments.

    Mirrors the visibility model of a search engine: writes land immediately
    (``get`` sees them) but ``search`` only sees the snapshot taken by the
    last ``refresh``. Pass ``auto_refresh=True`` to make every write
    searchable at once.
    """

    def __init__(self, auto_refresh: bool = False):
        self.auto_refresh = auto_refresh
        self._mappings: dict[str, dict[str, str]] = {}
        self._docs: dict[str, dict[str, dict]] = {}
        self._searchable: dict[str, dict[str, dict]] = {}

    def _collection(self, name: str) -> dict[str, dict]:
        if name not in self._docs:
            raise CollectionNotFoundError(name)
        return self._docs[name]

    def _written(self, name: str) -> None:
        if self.auto_refresh:
            self._snapshot(name)

    def _snapshot(self, name: str) -> None:
        self._searchable[name] = copy.deepcopy(self._docs[name])

    async def has_collection(self, name: str) -> bool:
        return name in self._docs

    async def ensure_collection(self, name: str, mapping: dict[str, str]) -> bool:
        if name in self._docs:
            return False
        self._mappings[name] = dict(mapping)
        self._docs[name] = {}
        self._searchable[name] = {}
        return True

    async def get(self, name: str, doc_id: str) -> Optional[dict]:
        doc = self._collection(name).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def index(self, name: str, fields: dict) -> str:
        docs = self._collection(name)
        doc_id = str(uuid.uuid4())
        docs[doc_id] = copy.deepcopy(fields)
        self._written(name)
        return doc_id

    async def update(self, name: str, doc_id: str, fields: dict) -> None:
        docs = self._collection(name)
        if doc_id not in docs:
            raise DocumentNotFoundError(name, doc_id)
        docs[doc_id].update(copy.deepcopy(fields))
        self._written(name)

    async def delete(self, name: str, doc_id: str) -> bool:
        docs = self._collection(name)
        if docs.pop(doc_id, None) is None:
            return False
        self._written(name)
        return True

    async def bulk_delete(self, name: str, doc_ids: list[str]) -> BulkDeleteResult:
        docs = self._collection(name)
        result = BulkDeleteResult()
        for doc_id in doc_ids:
            if docs.pop(doc_id, None) is not None:
                result.deleted += 1
        self._written(name)
        return result

    async def search(
        self,
        name: str,
        filters: Optional[dict] = None,
        sort_field: Optional[str] = None,
        sort_order: SortOrder = "desc",
        from_: int = 0,
        size: int = 10,
    ) -> list[dict]:
        _check_paging(from_, size)
        if name not in self._searchable:
            raise CollectionNotFoundError(name)

        hits = [
            {"id": doc_id, **copy.deepcopy(doc)}
            for doc_id, doc in self._searchable[name].items()
            if _matches(doc, filters)
        ]
        if sort_field:
            hits.sort(key=_sort_key(sort_field), reverse=(sort_order == "desc"))
        return hits[from_:from_ + size]

    async def refresh(self, name: str) -> None:
        self._collection(name)
        self._snapshot(name)


class LanceDBDocumentStore(IDocumentStore):
    """LanceDB-backed document store for persistent storage.

    Each collection is a LanceDB table with an ``id`` column plus one column
    per mapped field. Supports both local file storage and LanceDB Cloud.
    Filtering happens in LanceDB; sorting and paging are applied over the
    matching rows in Python.
    """

    _COLUMN_TYPES = {
        "keyword": "string",
        "text": "string",
        "date": "string",
        "integer": "int64",
    }

    # Maximum rows scanned by a single search. Collections are filtered
    # before the scan, so this bounds one conversation's interactions or one
    # user's conversations, not the whole table.
    _MAX_SCAN_LIMIT = 1_000_000

    _ID_PATTERN = re.compile(r'^[a-zA-Z0-9_\-:.]+$')

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        db_uri: Optional[str] = None,
        api_key: Optional[str] = None,
    ):
        self.db_path = Path(db_path) if db_path else None
        self.db_uri = db_uri
        self.api_key = api_key or os.environ.get("LANCEDB_API_KEY")

        self._db = None
        self._tables: dict = {}
        self._initialized = False

    async def _ensure_initialized(self):
        """Lazily initialize database connection."""
        if self._initialized:
            return

        try:
            import lancedb
        except ImportError:
            raise ImportError("LanceDB not installed. Run: pip install lancedb")

        try:
            if self.db_uri:
                self._db = lancedb.connect(self.db_uri, api_key=self.api_key)
            elif self.db_path:
                self.db_path.mkdir(parents=True, exist_ok=True)
                self._db = lancedb.connect(str(self.db_path))
            else:
                raise ValueError("Either db_path or db_uri must be provided")
        except ValueError:
            raise
        except Exception as e:
            raise StoreFailureError(f"Failed to connect to LanceDB: {e}") from e

        self._initialized = True

    @staticmethod
    def _table_name(name: str) -> str:
        """LanceDB table names cannot start with a dot."""
        return name.lstrip(".")

    def _table_names(self) -> list[str]:
        if not hasattr(self._db, "list_tables"):
            return list(self._db.table_names())
        # Newer releases wrap the names in a paged response
        response = self._db.list_tables()
        return list(getattr(response, "tables", response))

    def _open(self, name: str):
        table = self._tables.get(name)
        if table is not None:
            return table
        if self._table_name(name) not in self._table_names():
            raise CollectionNotFoundError(name)
        table = self._db.open_table(self._table_name(name))
        self._tables[name] = table
        return table

    def _schema(self, mapping: dict[str, str]):
        import pyarrow as pa

        fields = [pa.field("id", pa.string())]
        for field_name, field_type in mapping.items():
            column_type = self._COLUMN_TYPES.get(field_type)
            if column_type is None:
                raise InvalidArgumentError(
                    f"Unknown field type '{field_type}' for '{field_name}'"
                )
            fields.append(pa.field(field_name, getattr(pa, column_type)()))
        return pa.schema(fields)

    def _is_valid_id(self, doc_id: str) -> bool:
        """Store-assigned ids always match; anything else cannot exist."""
        return bool(self._ID_PATTERN.match(doc_id))

    def _sanitize_id(self, doc_id: str) -> str:
        """Sanitize an id to prevent SQL injection in LanceDB filters."""
        if not self._ID_PATTERN.match(doc_id):
            raise InvalidArgumentError(f"Invalid ID format: {doc_id[:20]}...")
        return doc_id.replace("'", "''")

    @staticmethod
    def _literal(value) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        return "'" + str(value).replace("'", "''") + "'"

    def _where(self, filters: Optional[dict]) -> Optional[str]:
        if not filters:
            return None
        clauses = []
        for field_name, value in filters.items():
            if value is None:
                clauses.append(f"`{field_name}` IS NULL")
            else:
                clauses.append(f"`{field_name}` = {self._literal(value)}")
        return " AND ".join(clauses)

    @staticmethod
    def _strip(row: dict) -> dict:
        return {k: v for k, v in row.items() if not k.startswith("_")}

    def _find(self, table, where: Optional[str], limit: int) -> list[dict]:
        query = table.search()
        if where:
            query = query.where(where)
        return [self._strip(row) for row in query.limit(limit).to_list()]

    async def has_collection(self, name: str) -> bool:
        await self._ensure_initialized()
        try:
            return self._table_name(name) in self._table_names()
        except Exception as e:
            raise StoreFailureError(f"Failed to list tables: {e}") from e

    async def ensure_collection(self, name: str, mapping: dict[str, str]) -> bool:
        await self._ensure_initialized()
        if await self.has_collection(name):
            return False

        logger.debug(f"No collection [{name}] found. Adding it")
        schema = self._schema(mapping)
        try:
            self._tables[name] = self._db.create_table(
                self._table_name(name), schema=schema
            )
        except Exception as e:
            # Another process created it between our check and create
            if self._table_name(name) in self._table_names():
                raise CollectionExistsError(name) from e
            raise StoreFailureError(f"Failed to create collection [{name}]: {e}") from e

        return True

    async def get(self, name: str, doc_id: str) -> Optional[dict]:
        await self._ensure_initialized()
        table = self._open(name)
        if not self._is_valid_id(doc_id):
            return None
        safe_id = self._sanitize_id(doc_id)
        try:
            rows = self._find(table, f"`id` = '{safe_id}'", 1)
        except CollectionNotFoundError:
            raise
        except Exception as e:
            raise StoreFailureError(f"Failed to get {doc_id} from [{name}]: {e}") from e
        if not rows:
            return None
        doc = rows[0]
        doc.pop("id", None)
        return doc

    async def index(self, name: str, fields: dict) -> str:
        await self._ensure_initialized()
        table = self._open(name)
        doc_id = str(uuid.uuid4())
        row = {column: fields.get(column) for column in table.schema.names}
        row["id"] = doc_id
        try:
            table.add([row])
        except Exception as e:
            raise StoreFailureError(f"Failed to index into [{name}]: {e}") from e
        return doc_id

    async def update(self, name: str, doc_id: str, fields: dict) -> None:
        if await self.get(name, doc_id) is None:
            raise DocumentNotFoundError(name, doc_id)
        safe_id = self._sanitize_id(doc_id)
        values = {k: v for k, v in fields.items() if k != "id" and v is not None}
        if not values:
            return
        try:
            self._open(name).update(where=f"`id` = '{safe_id}'", values=values)
        except Exception as e:
            raise StoreFailureError(f"Failed to update {doc_id} in [{name}]: {e}") from e

    async def delete(self, name: str, doc_id: str) -> bool:
        if await self.get(name, doc_id) is None:
            return False
        safe_id = self._sanitize_id(doc_id)
        try:
            self._open(name).delete(f"`id` = '{safe_id}'")
        except Exception as e:
            raise StoreFailureError(f"Failed to delete {doc_id} from [{name}]: {e}") from e
        return True

    async def bulk_delete(self, name: str, doc_ids: list[str]) -> BulkDeleteResult:
        """Delete ids one by one, collecting per-item failures."""
        await self._ensure_initialized()
        table = self._open(name)
        result = BulkDeleteResult()
        for doc_id in doc_ids:
            if not self._is_valid_id(doc_id):
                continue
            try:
                safe_id = self._sanitize_id(doc_id)
                table.delete(f"`id` = '{safe_id}'")
                result.deleted += 1
            except Exception as e:
                result.failures[doc_id] = str(e)
        return result

    async def search(
        self,
        name: str,
        filters: Optional[dict] = None,
        sort_field: Optional[str] = None,
        sort_order: SortOrder = "desc",
        from_: int = 0,
        size: int = 10,
    ) -> list[dict]:
        _check_paging(from_, size)
        await self._ensure_initialized()
        table = self._open(name)
        try:
            rows = self._find(table, self._where(filters), self._MAX_SCAN_LIMIT)
        except Exception as e:
            raise StoreFailureError(f"Failed to search [{name}]: {e}") from e

        if len(rows) >= self._MAX_SCAN_LIMIT:
            logger.warning(
                "Search on [%s] hit scan limit (%d); results may be truncated",
                name,
                self._MAX_SCAN_LIMIT,
            )
        if sort_field:
            rows.sort(key=_sort_key(sort_field), reverse=(sort_order == "desc"))
        return rows[from_:from_ + size]

    async def refresh(self, name: str) -> None:
        """Reopen the table so the handle sees the latest version."""
        await self._ensure_initialized()
        self._tables.pop(name, None)
        try:
            self._open(name)
        except CollectionNotFoundError:
            raise
        except Exception as e:
            raise StoreFailureError(f"Failed to refresh [{name}]: {e}") from e
