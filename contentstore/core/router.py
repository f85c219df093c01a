"""
Resource routing.

Maps (authority, path shape) to a route tag. Shapes are exact: a collection
name alone, or a collection name plus one non-empty key segment. The route
table is built once per router and never changes.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple, Union

from .address import SCHEME, ResourceAddress
from .config import get_content_authority
from .contract import PATH_HISTORY, PATH_IMAGES, History, Images, Tables
from .errors import UnknownResource

WILDCARD = "*"


class Route(Enum):
    IMAGES_COLLECTION = 100
    IMAGES_ITEM = 101
    HISTORY_COLLECTION = 200
    HISTORY_ITEM = 201

    @property
    def is_item(self) -> bool:
        return self in (Route.IMAGES_ITEM, Route.HISTORY_ITEM)

    @property
    def table(self) -> str:
        if self in (Route.IMAGES_COLLECTION, Route.IMAGES_ITEM):
            return Tables.IMAGES
        return Tables.HISTORY

    @property
    def key_column(self) -> Optional[str]:
        if self is Route.IMAGES_ITEM:
            return Images.IMAGE_ID
        if self is Route.HISTORY_ITEM:
            return History._ID
        return None

    @property
    def content_type(self) -> str:
        if self is Route.IMAGES_COLLECTION:
            return Images.CONTENT_TYPE
        if self is Route.IMAGES_ITEM:
            return Images.CONTENT_ITEM_TYPE
        if self is Route.HISTORY_COLLECTION:
            return History.CONTENT_TYPE
        return History.CONTENT_ITEM_TYPE


@dataclass(frozen=True)
class RouteResolution:
    """Where an address points: a table and, for item routes, one key."""

    route: Route
    address: ResourceAddress
    key: Optional[str] = None

    @property
    def table(self) -> str:
        return self.route.table

    @property
    def key_column(self) -> Optional[str]:
        return self.route.key_column

    @property
    def is_item(self) -> bool:
        return self.route.is_item

    def scoping_predicate(self) -> Optional[Tuple[str, Tuple[str]]]:
        """Key-equality fragment for item routes, None for collections."""
        if not self.is_item:
            return None
        return f"{self.key_column}=?", (self.key,)


class ResourceRouter:
    """Resolves resource addresses to exactly one route, or fails."""

    def __init__(self, authority: Optional[str] = None):
        self.authority = authority or get_content_authority()
        self._routes: Mapping[Tuple[str, ...], Route] = self._build_routes()

    @staticmethod
    def _build_routes() -> Mapping[Tuple[str, ...], Route]:
        routes: Dict[Tuple[str, ...], Route] = {
            (PATH_IMAGES,): Route.IMAGES_COLLECTION,
            (PATH_IMAGES, WILDCARD): Route.IMAGES_ITEM,
            (PATH_HISTORY,): Route.HISTORY_COLLECTION,
            (PATH_HISTORY, WILDCARD): Route.HISTORY_ITEM,
        }
        return MappingProxyType(routes)

    @property
    def routes(self) -> Mapping[Tuple[str, ...], Route]:
        return self._routes

    def _owns(self, address: ResourceAddress) -> bool:
        return address.scheme == SCHEME and address.authority == self.authority

    def is_whole_store(self, address: Union[str, ResourceAddress]) -> bool:
        """True for the base address of this authority. Query options are ignored."""
        address = ResourceAddress.parse(address)
        return self._owns(address) and address.is_root

    def match(self, address: Union[str, ResourceAddress]) -> Optional[RouteResolution]:
        """Resolve ``address``; None when nothing matches."""
        address = ResourceAddress.parse(address)
        if not self._owns(address):
            return None

        segments = address.segments
        if len(segments) == 1:
            route = self._routes.get((segments[0],))
            return RouteResolution(route, address) if route else None

        if len(segments) == 2:
            collection, key = segments
            if not key:
                return None
            route = self._routes.get((collection, WILDCARD))
            return RouteResolution(route, address, key) if route else None

        return None

    def resolve(self, address: Union[str, ResourceAddress]) -> RouteResolution:
        """Resolve ``address`` or raise UnknownResource."""
        address = ResourceAddress.parse(address)
        resolution = self.match(address)
        if resolution is None:
            reason = "whole-store address" if self.is_whole_store(address) else ""
            raise UnknownResource(address, reason)
        return resolution
