#!/usr/bin/env python3
"""
Firebase MCP Server - Model Context Protocol interface for Firebase.

Supports stdio transport for Claude Desktop and other MCP clients.
Run with: python -m firebase_mcp.server

Tools:
- firestore_*: collections, filtered document listing, document CRUD
- auth_get_user: user lookup by uid or email
- storage_*: directory listing and file info with signed URLs
"""  # noqa: I001

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
import logging
import sys
import time
from typing import Any

from firebase_mcp import __version__
from firebase_mcp.config import McpConfig, load_config
from firebase_mcp.connection import FirebaseConnection, connect, disconnect
from firebase_mcp.envelope import ToolResponse
from firebase_mcp.errors import BackendError
from firebase_mcp.observability import ObservabilityContext, setup_logging
from firebase_mcp.prompts import BOOTSTRAP_PROMPT
from firebase_mcp.tools.auth import AuthClient
from firebase_mcp.tools.firestore import DEFAULT_PAGE_LIMIT, FirestoreClient
from firebase_mcp.tools.storage import DEFAULT_PAGE_SIZE, StorageClient
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.shared.exceptions import McpError
from mcp.types import (
    METHOD_NOT_FOUND,
    CallToolRequest,
    ErrorData,
    ServerResult,
    Tool,
)

# Configure logging to stderr (stdout carries the MCP stream)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("firebase_mcp")

ToolHandler = Callable[[dict[str, Any]], Awaitable[ToolResponse]]

TOOLS: list[Tool] = [
    Tool(
        name="firestore_add_document",
        description="Add a document to a Firestore collection",
        inputSchema={
            "type": "object",
            "properties": {
                "collection": {
                    "type": "string",
                    "description": "Collection name",
                },
                "data": {
                    "type": "object",
                    "description": "Document data",
                },
            },
            "required": ["collection", "data"],
        },
    ),
    Tool(
        name="firestore_list_collections",
        description=(
            "List collections in Firestore. If documentPath is provided, returns "
            "subcollections under that document; otherwise returns root collections."
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "documentPath": {
                    "type": "string",
                    "description": "Optional parent document path",
                },
                "limit": {
                    "type": "number",
                    "description": "Number of collections to return",
                    "default": DEFAULT_PAGE_LIMIT,
                },
                "pageToken": {
                    "type": "string",
                    "description": "Token for pagination to get the next page of results",
                },
            },
            "required": [],
        },
    ),
    Tool(
        name="firestore_list_documents",
        description="List documents from a Firestore collection with optional filtering",
        inputSchema={
            "type": "object",
            "properties": {
                "collection": {
                    "type": "string",
                    "description": "Collection name",
                },
                "filters": {
                    "type": "array",
                    "description": "Array of filter conditions, all of which must match",
                    "items": {
                        "type": "object",
                        "properties": {
                            "field": {
                                "type": "string",
                                "description": "Field name to filter",
                            },
                            "operator": {
                                "type": "string",
                                "enum": [
                                    "==",
                                    "!=",
                                    "<",
                                    "<=",
                                    ">",
                                    ">=",
                                    "array-contains",
                                    "array-contains-any",
                                    "in",
                                    "not-in",
                                ],
                                "description": "Comparison operator",
                            },
                            "value": {
                                "description": "Value to compare against (use ISO format for dates)",
                            },
                        },
                        "required": ["field", "operator", "value"],
                    },
                },
                "limit": {
                    "type": "number",
                    "description": "Number of documents to return",
                    "default": DEFAULT_PAGE_LIMIT,
                },
                "pageToken": {
                    "type": "string",
                    "description": (
                        "Token for pagination to get the next page of results. "
                        "With a token, totalCount counts the matches remaining after it"
                    ),
                },
            },
            "required": ["collection"],
        },
    ),
    Tool(
        name="firestore_get_document",
        description="Get a document from a Firestore collection",
        inputSchema={
            "type": "object",
            "properties": {
                "collection": {
                    "type": "string",
                    "description": "Collection name",
                },
                "id": {
                    "type": "string",
                    "description": "Document ID",
                },
            },
            "required": ["collection", "id"],
        },
    ),
    Tool(
        name="firestore_update_document",
        description="Update a document in a Firestore collection (fields are merged)",
        inputSchema={
            "type": "object",
            "properties": {
                "collection": {
                    "type": "string",
                    "description": "Collection name",
                },
                "id": {
                    "type": "string",
                    "description": "Document ID",
                },
                "data": {
                    "type": "object",
                    "description": "Updated document data",
                },
            },
            "required": ["collection", "id", "data"],
        },
    ),
    Tool(
        name="firestore_delete_document",
        description="Delete a document from a Firestore collection",
        inputSchema={
            "type": "object",
            "properties": {
                "collection": {
                    "type": "string",
                    "description": "Collection name",
                },
                "id": {
                    "type": "string",
                    "description": "Document ID",
                },
            },
            "required": ["collection", "id"],
        },
    ),
    Tool(
        name="auth_get_user",
        description="Get a user by ID or email from Firebase Authentication",
        inputSchema={
            "type": "object",
            "properties": {
                "identifier": {
                    "type": "string",
                    "description": "User ID or email address",
                },
            },
            "required": ["identifier"],
        },
    ),
    Tool(
        name="storage_list_files",
        description="List files in a given path in Firebase Storage",
        inputSchema={
            "type": "object",
            "properties": {
                "directoryPath": {
                    "type": "string",
                    "description": "The optional path to list files from. If not provided, the root is used.",
                },
                "pageSize": {
                    "type": "number",
                    "description": "Number of entries to return",
                    "default": DEFAULT_PAGE_SIZE,
                },
                "pageToken": {
                    "type": "string",
                    "description": "Token for pagination to get the next page of results",
                },
            },
            "required": [],
        },
    ),
    Tool(
        name="storage_get_file_info",
        description="Get file information including metadata and download URL",
        inputSchema={
            "type": "object",
            "properties": {
                "filePath": {
                    "type": "string",
                    "description": "The path of the file to get information for",
                },
            },
            "required": ["filePath"],
        },
    ),
]


def _arg_or_default(args: dict[str, Any], key: str, default: Any) -> Any:
    value = args.get(key)
    return default if value is None else value


class FirebaseMcpServer:
    """Firebase MCP Server implementation."""

    def __init__(self, config: McpConfig, connection: FirebaseConnection | None = None):
        self.config = config
        self.connection = connection
        self.server = Server(config.server.name, version=__version__, instructions=BOOTSTRAP_PROMPT)

        self.obs = ObservabilityContext(config.observability)

        self.firestore = FirestoreClient(connection)
        self.auth = AuthClient(connection)
        self.storage = StorageClient(
            connection,
            storage=config.storage,
            firebase=config.firebase,
            emulator=config.emulator,
        )

        self.tools = list(TOOLS)
        self.tool_handlers: dict[str, ToolHandler] = {
            "firestore_add_document": self._handle_add_document,
            "firestore_list_collections": self._handle_list_collections,
            "firestore_list_documents": self._handle_list_documents,
            "firestore_get_document": self._handle_get_document,
            "firestore_update_document": self._handle_update_document,
            "firestore_delete_document": self._handle_delete_document,
            "auth_get_user": self._handle_get_user,
            "storage_list_files": self._handle_list_files,
            "storage_get_file_info": self._handle_get_file_info,
        }

        self._register_handlers()
        logger.info(
            f"Firebase MCP Server initialized ({config.config_version}, "
            f"connected={connection is not None}, tools={len(self.tools)})"
        )

    def list_tools(self) -> list[Tool]:
        """The fixed tool catalog."""
        return self.tools

    async def call_tool(self, name: str, arguments: dict[str, Any] | None) -> ToolResponse:
        """
        Route one call to its capability client.

        Returned envelopes (including isError ones) are relayed as-is;
        exceptions from a client propagate after being logged.

        Raises:
            McpError: METHOD_NOT_FOUND for a name outside the catalog
        """
        handler = self.tool_handlers.get(name)
        if handler is None:
            logger.warning(f"Unknown tool requested: {name}")
            raise McpError(ErrorData(code=METHOD_NOT_FOUND, message=f"Unknown tool: {name}"))

        cid = self.obs.correlation_id()
        started = time.perf_counter()
        logger.info(f"call_tool: {name}", extra={"correlation_id": cid, "tool": name})

        try:
            result = await handler(arguments or {})
        except Exception as e:
            latency_ms = (time.perf_counter() - started) * 1000
            self.obs.record(name, latency_ms, "fault")
            logger.error(
                f"Tool {name} failed: {e}",
                extra={
                    "correlation_id": cid,
                    "tool": name,
                    "latency_ms": round(latency_ms, 2),
                    "status": "fault",
                    "error": str(e),
                    "error_code": getattr(e, "code", BackendError.code),
                },
            )
            raise

        latency_ms = (time.perf_counter() - started) * 1000
        outcome = "error" if result.is_error else "ok"
        self.obs.record(name, latency_ms, outcome)
        logger.info(
            f"call_tool done: {name}",
            extra={
                "correlation_id": cid,
                "tool": name,
                "latency_ms": round(latency_ms, 2),
                "status": outcome,
                "error": result.text if result.is_error else None,
            },
        )
        return result

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            logger.debug("list_tools called")
            return self.list_tools()

        # Raw handler: the SDK's call_tool decorator folds every exception into
        # an isError result, which would hide the METHOD_NOT_FOUND fault.
        async def handle_call_tool(req: CallToolRequest) -> ServerResult:
            result = await self.call_tool(req.params.name, req.params.arguments)
            return ServerResult(result.to_call_tool_result())

        self.server.request_handlers[CallToolRequest] = handle_call_tool

    # Firestore

    async def _handle_add_document(self, args: dict[str, Any]) -> ToolResponse:
        return await self.firestore.add_document(args.get("collection"), args.get("data"))

    async def _handle_list_collections(self, args: dict[str, Any]) -> ToolResponse:
        return await self.firestore.list_collections(
            args.get("documentPath"),
            _arg_or_default(args, "limit", DEFAULT_PAGE_LIMIT),
            args.get("pageToken"),
        )

    async def _handle_list_documents(self, args: dict[str, Any]) -> ToolResponse:
        return await self.firestore.list_documents(
            args.get("collection"),
            args.get("filters") or [],
            _arg_or_default(args, "limit", DEFAULT_PAGE_LIMIT),
            args.get("pageToken"),
        )

    async def _handle_get_document(self, args: dict[str, Any]) -> ToolResponse:
        return await self.firestore.get_document(args.get("collection"), args.get("id"))

    async def _handle_update_document(self, args: dict[str, Any]) -> ToolResponse:
        return await self.firestore.update_document(
            args.get("collection"), args.get("id"), args.get("data")
        )

    async def _handle_delete_document(self, args: dict[str, Any]) -> ToolResponse:
        return await self.firestore.delete_document(args.get("collection"), args.get("id"))

    # Auth

    async def _handle_get_user(self, args: dict[str, Any]) -> ToolResponse:
        return await self.auth.get_user_by_id_or_email(args.get("identifier") or "")

    # Storage

    async def _handle_list_files(self, args: dict[str, Any]) -> ToolResponse:
        return await self.storage.list_directory_files(
            args.get("directoryPath"),
            _arg_or_default(args, "pageSize", DEFAULT_PAGE_SIZE),
            args.get("pageToken"),
        )

    async def _handle_get_file_info(self, args: dict[str, Any]) -> ToolResponse:
        return await self.storage.get_file_info(args.get("filePath"))

    async def run(self):
        """Run the server with stdio transport."""
        logger.info("Firebase MCP server running on stdio")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            if self.obs.enabled:
                logger.info(f"Session stats: {self.obs.summary()}")
            disconnect(self.connection)


def configure_logging(config: McpConfig) -> logging.Logger:
    """Apply observability or plain log-level settings; returns the server logger."""
    global logger  # noqa: PLW0603
    if config.observability.enabled:
        logger = setup_logging(config.observability, "firebase_mcp")
    else:
        log_level = getattr(logging, config.server.log_level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level)
        logger.setLevel(log_level)
    return logger


def main():
    """Entry point for the Firebase MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Firebase MCP Server")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to firebase-mcp.toml config file",
        default=None,
    )
    parser.add_argument(
        "--log-level",
        "-l",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Override log level",
    )
    args = parser.parse_args()

    config = load_config(args.config)

    if args.log_level:
        config.server.log_level = args.log_level
        config.observability.log_level = args.log_level

    configure_logging(config)

    # Log effective config (minus secrets)
    logger.info(f"Config loaded: enabled={config.enabled}, version={config.config_version}")
    logger.info(
        f"Emulator: active={config.emulator.active}, strict_not_found={config.storage.strict_not_found}"
    )

    if not config.enabled:
        logger.warning("MCP server disabled in config, exiting")
        sys.exit(0)

    server = FirebaseMcpServer(config, connect(config))
    try:
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")


if __name__ == "__main__":
    main()
