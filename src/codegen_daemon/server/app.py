"""aiohttp application exposing search, browsing and sync over HTTP."""

import time
from typing import Any, Dict, Optional

from aiohttp import web

from ..config.logging import get_logger, log_api_request
from ..config.settings import Settings
from ..descriptors.models import DescriptorType
from ..search.data_search import DEFAULT_PAGE_SIZE, DataSearchService
from ..search.search_service import SearchService
from ..search.usage_analyzer import UsageAnalyzer
from ..sync.operations import OperationsService
from .exceptions import DaemonError, ResourceNotFoundError, ValidationError
from .registry import DaemonRegistry

logger = get_logger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
SEARCH_KEY = web.AppKey("search_service", SearchService)
DATA_KEY = web.AppKey("data_search", DataSearchService)
OPERATIONS_KEY = web.AppKey("operations", OperationsService)
REGISTRY_KEY = web.AppKey("registry", DaemonRegistry)
STARTED_KEY = web.AppKey("started_at", float)


@web.middleware
async def error_middleware(request: web.Request, handler):
    """Render DaemonError as JSON and log every request."""
    start_time = time.time()
    try:
        response = await handler(request)
    except DaemonError as e:
        response = web.json_response(e.to_dict(), status=e.status)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception("Unhandled request error", path=request.path, error=str(e))
        response = web.json_response(
            {"error": {"code": "internal_error", "message": "Internal server error"}},
            status=500,
        )

    log_api_request(
        logger,
        request.method,
        request.path,
        (time.time() - start_time) * 1000,
        response.status,
    )
    return response


def _int_param(
    request: web.Request, name: str, default: int, minimum: int = 1
) -> int:
    raw = request.query.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(name, "must be an integer", raw) from None
    if value < minimum:
        raise ValidationError(name, f"must be >= {minimum}", raw)
    return value


def _type_param(request: web.Request) -> Optional[str]:
    value = request.query.get("type") or None
    allowed = [t.value for t in DescriptorType]
    if value is not None and value not in allowed:
        raise ValidationError("type", "unknown descriptor type", value, allowed)
    return value


def _require_descriptor(request: web.Request):
    descriptor_id = request.match_info["id"]
    descriptor = request.app[DATA_KEY].get_by_id(descriptor_id)
    if descriptor is None:
        raise ResourceNotFoundError("descriptor", descriptor_id)
    return descriptor


async def search_handler(request: web.Request) -> web.Response:
    page = request.app[DATA_KEY].search(
        query=request.query.get("query", ""),
        page=_int_param(request, "page", 1),
        size=_int_param(request, "size", DEFAULT_PAGE_SIZE),
        type=_type_param(request),
        source=request.query.get("source") or None,
        pkg=request.query.get("pkg") or None,
    )
    return web.json_response(page.to_dict())


async def recent_handler(request: web.Request) -> web.Response:
    limit = _int_param(request, "limit", DEFAULT_PAGE_SIZE)
    recent = request.app[DATA_KEY].get_recent(limit)
    return web.json_response([d.to_dict() for d in recent])


async def stats_handler(request: web.Request) -> web.Response:
    return web.json_response(request.app[DATA_KEY].get_stats().to_dict())


async def data_stats_handler(request: web.Request) -> web.Response:
    source = request.query.get("source") or None
    return web.json_response(request.app[DATA_KEY].get_data_stats(source).to_dict())


async def get_descriptor_handler(request: web.Request) -> web.Response:
    return web.json_response(_require_descriptor(request).to_dict())


async def related_handler(request: web.Request) -> web.Response:
    descriptor = _require_descriptor(request)
    related = request.app[DATA_KEY].get_related(descriptor.id) or {}
    return web.json_response(
        {
            key: [d.to_dict() for d in descriptors]
            for key, descriptors in related.items()
        }
    )


async def files_handler(request: web.Request) -> web.Response:
    descriptor = _require_descriptor(request)
    files = request.app[DATA_KEY].get_file_list(descriptor.id) or []
    return web.json_response({"id": descriptor.id, "files": files})


async def touch_handler(request: web.Request) -> web.Response:
    descriptor = _require_descriptor(request)
    touched = request.app[DATA_KEY].touch(descriptor.id)
    return web.json_response(touched.to_dict())


async def sync_handler(request: web.Request) -> web.Response:
    source_id = request.query.get("id") or None
    result = await request.app[OPERATIONS_KEY].sync(source_id)
    return web.json_response(result)


async def status_handler(request: web.Request) -> web.Response:
    return web.json_response(request.app[OPERATIONS_KEY].status())


async def health_handler(request: web.Request) -> web.Response:
    app = request.app
    body: Dict[str, Any] = {
        "status": "ok",
        "name": app[SETTINGS_KEY].server.name,
        "descriptors": len(app[SEARCH_KEY]),
        "uptime": time.time() - app[STARTED_KEY],
    }
    return web.json_response(body)


def create_app(
    settings: Optional[Settings] = None,
    search_service: Optional[SearchService] = None,
    operations: Optional[OperationsService] = None,
    registry: Optional[DaemonRegistry] = None,
    load_on_startup: bool = True,
) -> web.Application:
    """Build the daemon application.

    Args:
        settings: Application settings
        search_service: Search service to serve; built from settings if omitted
        operations: Sync/load orchestration; built from settings if omitted
        registry: Discovery registry written on startup, removed on cleanup
        load_on_startup: Whether to load saved specs when the app starts

    Returns:
        web.Application: Configured aiohttp application
    """
    settings = settings or Settings()
    if search_service is None:
        analyzer = UsageAnalyzer(settings.usage) if settings.usage.enabled else None
        search_service = SearchService(settings.search, usage_analyzer=analyzer)
    operations = operations or OperationsService(settings, search_service)

    app = web.Application(middlewares=[error_middleware])
    app[SETTINGS_KEY] = settings
    app[SEARCH_KEY] = search_service
    app[DATA_KEY] = DataSearchService(search_service)
    app[OPERATIONS_KEY] = operations
    app[STARTED_KEY] = time.time()

    app.router.add_get("/api/health", health_handler)
    app.router.add_get("/api/data/search", search_handler)
    app.router.add_get("/api/data/recent", recent_handler)
    app.router.add_get("/api/data/stats", stats_handler)
    app.router.add_get("/api/data/data-stats", data_stats_handler)
    app.router.add_get("/api/data/{id}", get_descriptor_handler)
    app.router.add_get("/api/data/{id}/related", related_handler)
    app.router.add_get("/api/data/{id}/files", files_handler)
    app.router.add_post("/api/data/{id}/touch", touch_handler)
    app.router.add_post("/api/operations/sync", sync_handler)
    app.router.add_get("/api/operations/status", status_handler)

    if load_on_startup:
        app.on_startup.append(_load_descriptors)
    if registry is not None:
        app[REGISTRY_KEY] = registry
        app.on_startup.append(_register)
        app.on_cleanup.append(_unregister)

    return app


async def _load_descriptors(app: web.Application) -> None:
    count = await app[OPERATIONS_KEY].load_all()
    logger.info("Search index ready", descriptors=count)


async def _register(app: web.Application) -> None:
    server = app[SETTINGS_KEY].server
    app[REGISTRY_KEY].register(server.name, server.host, server.port)


async def _unregister(app: web.Application) -> None:
    app[REGISTRY_KEY].unregister()


def run_daemon(settings: Settings) -> None:
    """Serve until interrupted, advertising the daemon in ``daemon.json``."""
    registry = DaemonRegistry(settings.get_data_dir())
    existing = registry.discover()
    if existing is not None:
        raise DaemonError(
            "already_running",
            f"Daemon already running at {existing.url} (pid {existing.pid})",
            {"url": existing.url, "pid": existing.pid},
        )

    app = create_app(settings, registry=registry)
    logger.info(
        "Starting daemon", host=settings.server.host, port=settings.server.port
    )
    web.run_app(app, host=settings.server.host, port=settings.server.port, print=None)
