"""
Sans-I/O DAV protocol implementation.

This module provides protocol-level operations without any I/O.
It builds requests and parses responses as pure data transformations.

The protocol layer is organized into:
- types: Core data structures (DAVRequest, DAVResponse, result types)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Pure functions to parse XML response bodies
- operations: DAVProtocol class combining builders and parsers
"""

from .types import (
    # Enums
    DAVMethod,
    # Request/Response
    DAVRequest,
    DAVResponse,
    # Result types
    CollectionInfo,
    MultistatusEntry,
)
from .xml_builders import (
    build_addressbook_query_body,
    build_calendar_query_body,
    build_propfind_body,
)
from .xml_parsers import (
    parse_bool,
    parse_collections,
    parse_multistatus,
)
from .operations import DAVProtocol

__all__ = [
    # Enums
    "DAVMethod",
    # Request/Response
    "DAVRequest",
    "DAVResponse",
    # Result types
    "CollectionInfo",
    "MultistatusEntry",
    # XML Builders
    "build_addressbook_query_body",
    "build_calendar_query_body",
    "build_propfind_body",
    # XML Parsers
    "parse_bool",
    "parse_collections",
    "parse_multistatus",
    # Protocol
    "DAVProtocol",
]
