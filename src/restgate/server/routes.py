"""API routes for the restgate server."""

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from restgate.config.schema import GatewayConfig
from restgate.instances.errors import GatewayError, InputError, InstanceUnavailableError
from restgate.instances.gateway import InstanceGateway
from restgate.instances.handle import ProxyResponse

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "PostgreSQL + PostgREST API\n\n"
    "Available endpoints:\n"
    "GET /api/users - Get all users\n"
    "GET /api/users/:id - Get user by ID\n"
    "POST /api/users - Create a new user\n"
    "PUT /api/users/:id - Update user\n"
    "DELETE /api/users/:id - Delete user\n\n"
    "GET /api/posts - Get all posts\n"
    "GET /api/posts/:id - Get post by ID\n"
    "POST /api/posts - Create a new post\n"
    "PUT /api/posts/:id - Update post\n"
    "DELETE /api/posts/:id - Delete post\n\n"
    "GET /api/lb/* - Load-balanced read from the instance pool\n"
    "GET /api/health - Health check\n"
    "GET /api/schema - Get database schema\n"
    "GET /api/instances - Registered instances and their state\n"
)

# Headers owned by the connection or recomputed when the body is re-sent
_SKIP_RESPONSE_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailers",
        "transfer-encoding",
        "upgrade",
        "content-length",
    }
)

# (collection, singular) pairs served under /api/<collection>
RESOURCES = (("users", "user"), ("posts", "post"))


def instance_name(operation: str, singular: str, entity_id: str | None = None) -> str:
    """Derive the instance name for a single-resource operation.

    Each operation maps to its own instance, even for the same entity id:
    ``read`` -> ``user-42``, ``create`` -> ``create-user``,
    ``update`` -> ``update-user-42``, ``delete`` -> ``delete-user-42``.
    """
    if operation == "read":
        return f"{singular}-{entity_id}"
    if operation == "create":
        return f"create-{singular}"
    if operation in ("update", "delete"):
        return f"{operation}-{singular}-{entity_id}"
    raise ValueError(f"Unknown operation: {operation}")


def entity_path(collection: str, entity_id: str) -> str:
    """Downstream path selecting one row by id."""
    return f"/{collection}?id=eq.{entity_id}"


def _timestamp() -> str:
    return datetime.now(UTC).isoformat()


def error_envelope(error: Exception, status_code: int = 500) -> JSONResponse:
    """JSON error response for a failed core operation."""
    content: dict[str, Any] = {"error": str(error) or "Unknown error", "timestamp": _timestamp()}
    cause = getattr(error, "last_error", None) or getattr(error, "cause", None)
    if cause is not None and str(cause) != content["error"]:
        content["detail"] = str(cause)
    return JSONResponse(content=content, status_code=status_code)


def relay(response: ProxyResponse) -> Response:
    """Pass a backend response through unchanged."""
    relayed = Response(content=response.body, status_code=response.status_code)
    for key, value in response.headers.multi_items():
        if key.lower() not in _SKIP_RESPONSE_HEADERS:
            relayed.headers.append(key, value)
    return relayed


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except ValueError as e:
        raise InputError(f"Invalid JSON body: {e}") from e


def _gateway(request: Request) -> InstanceGateway:
    return request.app.state.gateway


async def _proxy(
    request: Request,
    name: str,
    path: str,
    method: str = "GET",
    with_body: bool = False,
) -> Response:
    try:
        body = await _read_json(request) if with_body else None
        response = await _gateway(request).proxy(name, path, method, body)
    except InputError as e:
        return error_envelope(e, status_code=400)
    except GatewayError as e:
        return error_envelope(e)
    return relay(response)


def _add_resource_routes(router: APIRouter, collection: str, singular: str) -> None:
    """Register list/read/create/update/delete routes for one resource."""
    base = f"/api/{collection}"

    @router.get(base, name=f"list_{collection}")
    async def list_all(request: Request) -> Response:
        return await _proxy(request, collection, f"/{collection}")

    @router.get(base + "/{entity_id}", name=f"get_{singular}")
    async def read_one(request: Request, entity_id: str) -> Response:
        return await _proxy(
            request, instance_name("read", singular, entity_id), entity_path(collection, entity_id)
        )

    @router.post(base, name=f"create_{singular}")
    async def create(request: Request) -> Response:
        return await _proxy(
            request, instance_name("create", singular), f"/{collection}", "POST", with_body=True
        )

    @router.put(base + "/{entity_id}", name=f"update_{singular}")
    async def update(request: Request, entity_id: str) -> Response:
        return await _proxy(
            request,
            instance_name("update", singular, entity_id),
            entity_path(collection, entity_id),
            "PATCH",
            with_body=True,
        )

    @router.delete(base + "/{entity_id}", name=f"delete_{singular}")
    async def delete(request: Request, entity_id: str) -> Response:
        return await _proxy(
            request,
            instance_name("delete", singular, entity_id),
            entity_path(collection, entity_id),
            "DELETE",
        )


def create_router(config: GatewayConfig) -> APIRouter:
    """Create API router.

    Args:
        config: Gateway configuration

    Returns:
        Configured API router
    """
    router = APIRouter()

    @router.get("/", response_class=PlainTextResponse)
    async def home() -> str:
        """Plain-text list of available endpoints."""
        return HELP_TEXT

    @router.get("/api/health")
    async def health(request: Request) -> JSONResponse:
        """Check that a backend instance can be started and answers."""
        try:
            response = await _gateway(request).proxy("health-check", "/")
        except InstanceUnavailableError as e:
            logger.error(f"Health check error: {e}")
            return JSONResponse(
                content={"status": "unhealthy", "error": str(e)},
                status_code=503,
            )
        except GatewayError as e:
            logger.error(f"Health check error: {e}")
            return JSONResponse(
                content={"status": "error", "error": str(e), "timestamp": _timestamp()},
                status_code=500,
            )

        if response.ok:
            return JSONResponse(
                content={"status": "healthy", "message": "PostgreSQL + PostgREST is running"}
            )
        return JSONResponse(
            content={"status": "unhealthy", "error": "PostgREST not responding"},
            status_code=503,
        )

    @router.get("/api/schema")
    async def schema(request: Request) -> Response:
        """PostgREST's OpenAPI description of the database schema."""
        return await _proxy(request, "schema", "/")

    @router.get("/api/instances")
    async def instances(request: Request) -> dict[str, Any]:
        """Registered instances and their liveness state."""
        gateway = _gateway(request)
        return {
            "instances": {name: str(state) for name, state in gateway.registry.snapshot().items()},
            "pool_size": config.pool.size,
        }

    for collection, singular in RESOURCES:
        _add_resource_routes(router, collection, singular)

    @router.get("/api/lb/{path:path}")
    async def load_balanced(request: Request, path: str) -> Response:
        """Forward a read to one member of the instance pool."""
        downstream = "/" + path
        if request.url.query:
            downstream += "?" + request.url.query
        try:
            response = await _gateway(request).proxy_pooled(downstream)
        except GatewayError as e:
            return error_envelope(e)
        return relay(response)

    return router
