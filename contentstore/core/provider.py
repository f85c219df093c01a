"""
Data provider: resolves resource addresses, scopes the selection, runs the
statement and announces the change.

Every public operation is one resolve -> build -> execute -> notify pass.
Item addresses always seed the selection with the key-equality fragment
before any caller fragment is added.
"""

import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Optional, Sequence, Union

from pydantic import ValidationError

from ..api.schemas import HealthResponse, HistoryRecordRequest, ImageRecordRequest
from .address import ResourceAddress
from .config import VERSION, debug_enabled, schema_validation_strict
from .contract import History, Images, Tables, is_distinct_requested
from .cursor import ResultCursor
from .db import StorageHandle, health_check
from .errors import (
    ConstraintViolation,
    ContentStoreError,
    SchemaValidationError,
    UnsupportedOperation,
)
from .notify import NotificationGate, NotificationSink, ObserverBus
from .router import ResourceRouter, Route, RouteResolution
from .selection import SelectionBuilder, insert_statement, split_args
from ..util.logging import logger, set_debug

Address = Union[str, ResourceAddress]


class DataProvider:
    """Content provider over the images and history tables."""

    def __init__(self, sink: Optional[NotificationSink] = None, db_path: Optional[str] = None,
                 authority: Optional[str] = None, storage: Optional[StorageHandle] = None):
        self.router = ResourceRouter(authority)
        self.storage = storage or StorageHandle(db_path)
        self.gate = NotificationGate(sink if sink is not None else ObserverBus())
        if debug_enabled():
            set_debug(True)

    @property
    def authority(self) -> str:
        return self.router.authority

    @contextmanager
    def _operation(self, operation: str, address: ResourceAddress):
        """Log and translate failures for one operation."""
        try:
            yield
        except sqlite3.IntegrityError as e:
            logger.log_mutation(operation, str(address), status="constraint_violation")
            raise ConstraintViolation(f"{operation} on {address} violates a constraint: {e}") from e
        except ContentStoreError as e:
            logger.warning(f"{operation} rejected for {address}: {e}")
            raise
        except sqlite3.Error as e:
            logger.error(f"Database error during {operation} on {address}: {e}")
            raise

    def _build_selection(self, resolution: RouteResolution) -> SelectionBuilder:
        """Build a SelectionBuilder scoped to the resolved route."""
        builder = SelectionBuilder().table(resolution.table)
        scope = resolution.scoping_predicate()
        if scope is not None:
            fragment, args = scope
            builder.where(fragment, *args)
        return builder

    def query(self, address: Address, projection: Optional[Sequence[str]] = None,
              selection: Optional[str] = None, selection_args: Optional[Iterable[Any]] = None,
              sort_order: Optional[str] = None, limit: Optional[int] = None) -> ResultCursor:
        address = ResourceAddress.parse(address)
        if debug_enabled():
            logger.log_query(str(address), list(projection) if projection else None,
                             selection, list(split_args(selection_args)), sort_order)

        with self._operation("query", address):
            resolution = self.router.resolve(address)
            builder = self._build_selection(resolution).where(selection, *split_args(selection_args))
            distinct = is_distinct_requested(address)

            with self.storage.acquire() as database:
                cursor = ResultCursor(builder.query(database, projection, distinct, sort_order, limit))

        cursor.set_notification_address(self.gate, address)
        return cursor

    def insert(self, address: Address, values: Optional[Dict[str, Any]]) -> ResourceAddress:
        """Insert one record into a collection; returns the new item's address."""
        address = ResourceAddress.parse(address)
        values = dict(values or {})

        with self._operation("insert", address):
            if self.router.is_whole_store(address):
                raise UnsupportedOperation("insert", address)
            resolution = self.router.resolve(address)
            if resolution.is_item:
                raise UnsupportedOperation("insert", address)

            self._validate_record(resolution.route, values)
            self._check_image_key("insert", address, resolution, values)
            sql, args = insert_statement(resolution.table, values)

            with self.storage.acquire() as database:
                row_id = database.execute(sql, args).lastrowid

        if resolution.route is Route.IMAGES_COLLECTION:
            new_address = Images.build_image_uri(str(values[Images.IMAGE_ID]), self.authority)
        else:
            new_address = History.build_history_uri(row_id, self.authority)

        logger.log_mutation("insert", str(new_address), values)
        self.gate.publish(address, target=new_address)
        return new_address

    def bulk_insert(self, address: Address, values_list: Iterable[Dict[str, Any]]) -> int:
        """Insert each record in turn; stops at the first failure."""
        count = 0
        for values in values_list:
            self.insert(address, values)
            count += 1
        return count

    def update(self, address: Address, values: Dict[str, Any], selection: Optional[str] = None,
               selection_args: Optional[Iterable[Any]] = None) -> int:
        address = ResourceAddress.parse(address)

        with self._operation("update", address):
            resolution = self.router.resolve(address)
            self._check_image_key("update", address, resolution, values)
            builder = self._build_selection(resolution).where(selection, *split_args(selection_args))

            with self.storage.acquire() as database:
                count = builder.update(database, values)

        logger.log_mutation("update", str(address), values, affected=count)
        # Zero matching rows still notifies: cheaper than tracking what changed
        self.gate.publish(address)
        return count

    def delete(self, address: Address, selection: Optional[str] = None,
               selection_args: Optional[Iterable[Any]] = None) -> int:
        address = ResourceAddress.parse(address)

        if self.router.is_whole_store(address):
            # Whole-store delete, e.g. when signing out
            with self._operation("delete", address):
                self.storage.reset()
            self.gate.publish(address)
            return 1

        with self._operation("delete", address):
            resolution = self.router.resolve(address)
            builder = self._build_selection(resolution).where(selection, *split_args(selection_args))

            with self.storage.acquire() as database:
                count = builder.delete(database)

        logger.log_mutation("delete", str(address), affected=count)
        self.gate.publish(address)
        return count

    def get_type(self, address: Address) -> str:
        """Content type of a collection or item address."""
        address = ResourceAddress.parse(address)
        with self._operation("get_type", address):
            return self.router.resolve(address).route.content_type

    @staticmethod
    def _check_image_key(operation: str, address: ResourceAddress, resolution: RouteResolution,
                         values: Dict[str, Any]):
        # an empty key would give the row an address that routes nowhere
        if resolution.table == Tables.IMAGES and values.get(Images.IMAGE_ID) == "":
            raise ConstraintViolation(f"{operation} on {address} needs a non-empty {Images.IMAGE_ID}")

    def _validate_record(self, route: Route, values: Dict[str, Any]):
        if not schema_validation_strict():
            return
        model = ImageRecordRequest if route is Route.IMAGES_COLLECTION else HistoryRecordRequest
        try:
            model(**values)
        except ValidationError as e:
            errors = e.errors()
            logger.log_schema_validation_error("insert", errors, values)
            raise SchemaValidationError(
                f"Invalid {route.table} record: {e.error_count()} validation error(s)", errors
            ) from e

    def count(self, table: str) -> int:
        """Row count of a managed table."""
        if table not in Tables.ALL:
            raise ValueError(f"Unknown table: {table}")
        with self.storage.acquire() as database:
            return database.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def health(self) -> HealthResponse:
        with self.storage.acquire() as database:
            database.get_readable_database()
        db_health = health_check(self.storage.db_path) if self.storage.db_path != ":memory:" else True
        return HealthResponse(
            status="healthy" if db_health else "unhealthy",
            version=VERSION,
            db_health=db_health,
            image_count=self.count(Tables.IMAGES),
            history_count=self.count(Tables.HISTORY),
        )

    def shutdown(self):
        self.storage.close()
