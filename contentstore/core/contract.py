"""
Contract between the content store and its callers: authority, table and
column names, content types, query options and address helpers.
"""

from typing import Optional, Union

from .address import ResourceAddress
from .config import get_content_authority

QUERY_PARAMETER_DISTINCT = "distinct"
CALLER_IS_SYNCADAPTER = "caller_is_syncadapter"

PATH_IMAGES = "images"
PATH_HISTORY = "history"

CONTENT_TYPE_BASE = "vnd.contentstore"


class Tables:
    IMAGES = "images"
    HISTORY = "history"

    ALL = (IMAGES, HISTORY)


class BaseColumns:
    _ID = "_id"


class Images(BaseColumns):
    """Image catalog, keyed by the caller-supplied ``image_id``."""

    IMAGE_ID = "image_id"
    IMAGE_URL = "image_url"
    IMAGE_TITLE = "image_title"
    IMAGE_WIDTH = "image_width"
    IMAGE_HEIGHT = "image_height"
    IMAGE_UPDATED = "image_updated"

    CONTENT_TYPE = f"{CONTENT_TYPE_BASE}.dir/image"
    CONTENT_ITEM_TYPE = f"{CONTENT_TYPE_BASE}.item/image"

    @staticmethod
    def content_uri(authority: Optional[str] = None) -> ResourceAddress:
        return base_content_uri(authority).append_path(PATH_IMAGES)

    @staticmethod
    def build_image_uri(image_id: str, authority: Optional[str] = None) -> ResourceAddress:
        return Images.content_uri(authority).append_path(str(image_id))

    @staticmethod
    def get_image_id(address: Union[str, ResourceAddress]) -> str:
        return ResourceAddress.parse(address).segments[1]


class History(BaseColumns):
    """Append-mostly history log, keyed by the storage-assigned ``_id``."""

    IMAGE_ID = "image_id"
    HISTORY_ACTION = "history_action"
    HISTORY_TIMESTAMP = "history_timestamp"

    CONTENT_TYPE = f"{CONTENT_TYPE_BASE}.dir/history"
    CONTENT_ITEM_TYPE = f"{CONTENT_TYPE_BASE}.item/history"

    @staticmethod
    def content_uri(authority: Optional[str] = None) -> ResourceAddress:
        return base_content_uri(authority).append_path(PATH_HISTORY)

    @staticmethod
    def build_history_uri(history_id: Union[int, str], authority: Optional[str] = None) -> ResourceAddress:
        return History.content_uri(authority).append_path(str(history_id))

    @staticmethod
    def get_history_id(address: Union[str, ResourceAddress]) -> str:
        return ResourceAddress.parse(address).segments[1]


def base_content_uri(authority: Optional[str] = None) -> ResourceAddress:
    """The whole-store address."""
    return ResourceAddress(authority=authority or get_content_authority())


def has_caller_is_syncadapter_parameter(address: Union[str, ResourceAddress]) -> bool:
    value = ResourceAddress.parse(address).get_query_parameter(CALLER_IS_SYNCADAPTER)
    return value is not None and value.lower() == "true"


def add_caller_is_syncadapter_parameter(address: Union[str, ResourceAddress]) -> ResourceAddress:
    return ResourceAddress.parse(address).with_query(**{CALLER_IS_SYNCADAPTER: "true"})


def is_distinct_requested(address: Union[str, ResourceAddress]) -> bool:
    """Any non-empty ``distinct`` value turns DISTINCT on."""
    return bool(ResourceAddress.parse(address).get_query_parameter(QUERY_PARAMETER_DISTINCT))
