"""
edit-mcp server bootstrap.

Builds the component graph (filesystem, worker pool, router, protocol
server), installs logging through dictConfig and starts either the HTTP
transport under uvicorn or the stdio transport.
"""
import os
import copy
import asyncio
import logging
import logging.config
from typing import Any, Dict, NamedTuple, Optional
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from editmcp.config import EditMCPConfig, get_config
from editmcp.core.filesystem import FileSystemManager
from editmcp.edit.manager import EditInstanceManager
from editmcp.mcp.server import MCPServer
from editmcp.mcp.tools import register_edit_tools
from editmcp.router.operation_router import OperationRouter
from editmcp.utils.logging import logger
from editmcp.version import __version__

SERVER_INSTRUCTIONS = (
    "File editing tools. Simple reads and writes go straight to the filesystem; "
    "formatting, refactoring and interactive sessions run in edit worker processes."
)

# --- Logging configuration dictionary ---

LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "access": {
            "()": "uvicorn.logging.AccessFormatter",
            "fmt": '%(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s',
        },
        "file": {
            "format": "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "access": {
            "formatter": "access",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
        "rich_console": {
            "()": "editmcp.utils.logging.formatter.create_rich_console_handler",
        },
    },
    "loggers": {
        "uvicorn": {"handlers": ["rich_console"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"level": "INFO", "propagate": True},
        "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        "editmcp": {
            "handlers": ["rich_console"],
            "level": "INFO",
            "propagate": False,
        },
    },
    "root": {
        "level": "INFO",
        "handlers": ["rich_console"],
    },
}


def build_logging_config(level: str = "info", log_file: Optional[str] = None) -> Dict[str, Any]:
    """Return a copy of LOGGING_CONFIG set to `level`, with an optional rotating file."""
    final_level = level.upper()
    config = copy.deepcopy(LOGGING_CONFIG)

    config["root"]["level"] = final_level
    config["loggers"]["editmcp"]["level"] = final_level
    config["loggers"]["uvicorn.access"]["level"] = final_level if final_level != "CRITICAL" else "CRITICAL"
    uvicorn_base_level = "DEBUG" if final_level == "DEBUG" else "INFO"
    config["loggers"]["uvicorn"]["level"] = uvicorn_base_level
    config["loggers"]["uvicorn.error"]["level"] = uvicorn_base_level

    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        config["handlers"]["rotating_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "file",
            "filename": log_file,
            "maxBytes": 2 * 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf-8",
        }
        config["loggers"]["editmcp"]["handlers"].append("rotating_file")
        config["loggers"]["uvicorn.access"]["handlers"].append("rotating_file")
        config["root"]["handlers"].append("rotating_file")

    return config


def configure_logging(level: str = "info", log_file: Optional[str] = None) -> Dict[str, Any]:
    """Install the logging configuration and return it for uvicorn."""
    config = build_logging_config(level, log_file)
    logging.config.dictConfig(config)
    return config


# --- Component graph ---


class ServerComponents(NamedTuple):
    filesystem: FileSystemManager
    pool: EditInstanceManager
    router: OperationRouter
    server: MCPServer


def build_components(config: Optional[EditMCPConfig] = None) -> ServerComponents:
    """Wire the filesystem, worker pool, router and protocol server together."""
    config = config or get_config()

    filesystem = FileSystemManager()
    pool = EditInstanceManager.from_config(config.edit)
    router = OperationRouter.from_config(config.router, filesystem, pool)
    server = MCPServer(instructions=SERVER_INSTRUCTIONS, filesystem=filesystem)
    register_edit_tools(server, router, pool)

    logger.debug(
        "Server components built",
        component="server",
        operation="build",
        context={
            "executable": pool.executable,
            "max_instances": pool.max_instances,
            "tools": len(server.list_tools()),
        },
    )
    return ServerComponents(filesystem=filesystem, pool=pool, router=router, server=server)


# --- HTTP transport ---


def create_server(
    config: Optional[EditMCPConfig] = None,
    components: Optional[ServerComponents] = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Configuration to use; the global one when None
        components: Prebuilt components (tests pass fakes here)

    Returns:
        FastAPI application
    """
    from editmcp.api.app import api_router, mcp_router
    from editmcp.api.errors import add_error_handlers

    config = config or get_config()
    components = components or build_components(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            f"Starting edit-mcp server v{__version__}",
            component="http",
            operation="startup",
            context={"host": config.server.host, "port": config.server.port},
        )
        yield
        logger.info("Shutting down edit-mcp server", component="http", operation="shutdown")
        await components.pool.shutdown()
        components.filesystem.dispose()

    app = FastAPI(
        title="edit-mcp",
        description="Model Context Protocol server for file editing",
        version=__version__,
        lifespan=lifespan,
        debug=config.server.debug,
    )

    app.state.config = config
    app.state.components = components
    app.state.mcp_server = components.server

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    add_error_handlers(app)

    app.include_router(mcp_router)
    app.include_router(api_router, prefix="/api")

    @app.get("/health", tags=["System"])
    async def health_check():
        return {
            "status": "ok",
            "version": __version__,
            "initialized": components.server.initialized,
            "instances": components.pool.instance_count,
        }

    return app


def start_server(
    host: Optional[str] = None,
    port: Optional[int] = None,
    log_level: Optional[str] = None,
) -> None:
    """Start the HTTP transport under uvicorn."""
    config = get_config()
    server_host = host or config.server.host
    server_port = port or config.server.port
    final_log_level = (log_level or config.server.log_level).lower()

    log_config = configure_logging(final_log_level, config.server.log_file)
    logger.info(
        f"Preparing to start uvicorn on {server_host}:{server_port}",
        component="http",
        operation="startup",
    )

    uvicorn.run(
        create_server(config),
        host=server_host,
        port=server_port,
        log_config=log_config,
    )


# --- stdio transport ---


def start_stdio(log_level: Optional[str] = None) -> None:
    """Serve newline-delimited JSON-RPC on stdin/stdout until end of input."""
    from editmcp.transport.stdio import serve_stdio

    config = get_config()
    configure_logging((log_level or config.server.log_level).lower(), config.server.log_file)
    components = build_components(config)

    try:
        asyncio.run(serve_stdio(components.server, components.pool))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down", component="stdio", operation="shutdown")
        components.pool.dispose()
