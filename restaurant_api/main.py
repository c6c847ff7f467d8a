"""
FastAPI Application Entry Point

Noodle Shop Ordering API.

Endpoints:
    - GET/POST /api/menu, GET/PUT/DELETE /api/menu/{id}: Menu catalog
    - GET/POST /api/members, GET /api/members/{phone}: Loyalty members
    - POST /api/members/{phone}/points: Manual point adjustment
    - GET /api/members/{phone}/orders: Member order history
    - POST/GET /api/orders, GET /api/orders/{id}: Orders
    - PATCH /api/orders/{id}/status: Move an order through its lifecycle
    - GET /uploads/menu/...: Uploaded menu photos
    - GET /health: System health check

Run with:
    uvicorn restaurant_api.main:app --port 3000
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import redis
from starlette.datastructures import UploadFile

from restaurant_api.core.config import get_settings, setup_logging
from restaurant_api.exceptions import MemberNotFound, RestaurantError
from restaurant_api.models import OrderStatus
from restaurant_api.repositories import BaseStore, get_store
from restaurant_api.schemas import (
    ErrorResponse,
    HealthResponse,
    MemberCreate,
    MemberRead,
    MenuItemRead,
    OrderCreate,
    OrderListResponse,
    OrderRead,
    OrderStatusUpdate,
    PointsAdjustment,
    normalize_phone,
)
from restaurant_api.services.catalog import build_new_item, build_update
from restaurant_api.services.orders import OrderService
from restaurant_api.services.uploads import build_image_url, delete_menu_image, save_menu_image

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    store = get_store()

    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Storage: {store.backend_name}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    settings.menu_upload_path.mkdir(parents=True, exist_ok=True)
    logger.info(f"✅ Upload directory: {settings.menu_upload_path}")

    await store.init()
    logger.info("✅ Store initialized")

    missing = settings.validate_production_config()
    if missing:
        logger.warning(f"⚠️ Unsuitable production config: {missing}")

    logger.info("✅ Application ready!")

    yield  # Application runs

    logger.info("Shutting down...")
    await store.close()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Menu catalog, loyalty members and order placement for a counter-service restaurant.",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials="*" not in settings.cors_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_directory, check_dir=False),
    name="uploads",
)


# =============================================================================
# DEPENDENCIES & HELPERS
# =============================================================================

def get_order_service(store: BaseStore = Depends(get_store)) -> OrderService:
    current = get_settings()
    return OrderService(
        store,
        point_value=current.point_value,
        points_per_amount=current.points_per_amount,
        export_orders=current.export_orders,
    )


def member_phone(phone: str) -> str:
    """Normalize a phone path parameter; malformed numbers cannot be members."""
    try:
        return normalize_phone(phone)
    except ValueError:
        raise MemberNotFound(phone)


async def read_menu_payload(request: Request) -> tuple[dict[str, Any], Optional[UploadFile]]:
    """Read menu fields from a JSON body or a (multipart) form with optional ``image``."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        fields = {k: v for k, v in form.items() if not isinstance(v, UploadFile)}
        image = form.get("image")
        if isinstance(image, UploadFile) and image.filename:
            return fields, image
        return fields, None

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON or form data")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return body, None


async def store_image(upload: UploadFile) -> str:
    current = get_settings()
    return await save_menu_image(upload, current.menu_upload_path, current.max_upload_bytes)


async def discard_image(filename: str) -> None:
    await delete_menu_image(get_settings().menu_upload_path, filename)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍜 Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(store: BaseStore = Depends(get_store)) -> HealthResponse:
    """Verify the storage backend and, when exporting, the broker."""
    storage_ok = await store.health_check()

    # The broker only matters when orders are queued to the ledger
    current = get_settings()
    redis_status = "disabled"
    if current.export_orders:
        redis_status = "healthy"
        try:
            r = redis.Redis.from_url(current.redis_url, socket_timeout=2)
            r.ping()
            r.close()
        except redis.RedisError as e:
            redis_status = f"unhealthy: {e}"
            logger.error(f"Redis health check failed: {e}")

    healthy = storage_ok and redis_status in ("healthy", "disabled")
    return HealthResponse(
        status="operational" if healthy else "degraded",
        storage=f"{store.backend_name}: {'healthy' if storage_ok else 'unhealthy'}",
        redis=redis_status,
        timestamp=datetime.now(),
    )


# =============================================================================
# MENU ENDPOINTS
# =============================================================================

@app.get("/api/menu", response_model=list[MenuItemRead], tags=["Menu"])
async def list_menu(
    category: Optional[str] = Query(None),
    store: BaseStore = Depends(get_store),
) -> list[MenuItemRead]:
    return await store.list_menu(category=category)


@app.get("/api/menu/{item_id}", response_model=MenuItemRead, tags=["Menu"])
async def get_menu_item(item_id: int, store: BaseStore = Depends(get_store)) -> MenuItemRead:
    return await store.get_menu_item(item_id)


@app.post(
    "/api/menu",
    response_model=MenuItemRead,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Menu"],
    summary="Create Menu Item",
)
async def create_menu_item(request: Request, store: BaseStore = Depends(get_store)) -> MenuItemRead:
    """
    Add a catalog entry from JSON or multipart form data.

    ``name`` and a numeric ``price`` are required. A multipart ``image``
    field is stored and its URL saved on the item.
    """
    fields, upload = await read_menu_payload(request)
    data = build_new_item(fields)
    filename = None
    if upload is not None:
        filename = await store_image(upload)
        data.image = build_image_url(str(request.base_url), filename)

    try:
        item = await store.create_menu_item(data)
    except Exception:
        if filename:
            await discard_image(filename)
        raise
    logger.info(f"Menu item #{item.id} created: {item.name} ({item.price})")
    return item


@app.put(
    "/api/menu/{item_id}",
    response_model=MenuItemRead,
    responses={404: {"model": ErrorResponse}},
    tags=["Menu"],
    summary="Update Menu Item",
)
async def update_menu_item(
    item_id: int,
    request: Request,
    store: BaseStore = Depends(get_store),
) -> MenuItemRead:
    """Partial update; a non-numeric price is ignored."""
    fields, upload = await read_menu_payload(request)
    changes = build_update(fields)
    await store.get_menu_item(item_id)

    filename = None
    if upload is not None:
        filename = await store_image(upload)
        changes.image = build_image_url(str(request.base_url), filename)

    try:
        item = await store.update_menu_item(item_id, changes)
    except Exception:
        if filename:
            await discard_image(filename)
        raise
    logger.info(f"Menu item #{item.id} updated")
    return item


@app.delete(
    "/api/menu/{item_id}",
    response_model=MenuItemRead,
    responses={404: {"model": ErrorResponse}},
    tags=["Menu"],
)
async def delete_menu_item(item_id: int, store: BaseStore = Depends(get_store)) -> MenuItemRead:
    removed = await store.delete_menu_item(item_id)
    logger.info(f"Menu item #{removed.id} deleted: {removed.name}")
    return removed


# =============================================================================
# MEMBER ENDPOINTS
# =============================================================================

@app.get("/api/members", response_model=list[MemberRead], tags=["Members"])
async def list_members(store: BaseStore = Depends(get_store)) -> list[MemberRead]:
    return await store.list_members()


@app.post(
    "/api/members",
    response_model=MemberRead,
    status_code=201,
    responses={409: {"model": ErrorResponse}},
    tags=["Members"],
    summary="Enroll Member",
)
async def create_member(data: MemberCreate, store: BaseStore = Depends(get_store)) -> MemberRead:
    member = await store.create_member(data)
    logger.info(f"Member {member.phone} enrolled")
    return member


@app.get(
    "/api/members/{phone}",
    response_model=MemberRead,
    responses={404: {"model": ErrorResponse}},
    tags=["Members"],
    summary="Look Up Member",
)
async def get_member(phone: str, store: BaseStore = Depends(get_store)) -> MemberRead:
    return await store.get_member(member_phone(phone))


@app.post(
    "/api/members/{phone}/points",
    response_model=MemberRead,
    responses={404: {"model": ErrorResponse}},
    tags=["Members"],
    summary="Adjust Member Points",
)
async def adjust_member_points(
    phone: str,
    adjustment: PointsAdjustment,
    store: BaseStore = Depends(get_store),
) -> MemberRead:
    """Add (or subtract) points by hand; the balance never goes below zero."""
    member = await store.adjust_points(member_phone(phone), adjustment.delta)
    logger.info(
        f"Member {member.phone} points adjusted by {adjustment.delta} "
        f"({adjustment.reason or 'no reason given'}) -> {member.points}"
    )
    return member


@app.get(
    "/api/members/{phone}/orders",
    response_model=OrderListResponse,
    tags=["Members"],
)
async def member_orders(
    phone: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    store: BaseStore = Depends(get_store),
) -> OrderListResponse:
    member = await store.get_member(member_phone(phone))
    total, orders = await store.list_orders(skip=skip, limit=limit, member_phone=member.phone)
    return OrderListResponse(total=total, orders=orders)


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.post(
    "/api/orders",
    response_model=OrderRead,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Place Order",
)
async def create_order(
    order_data: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderRead:
    """
    Place an order.

    Line prices come from the catalog; prices or totals sent by the client
    are ignored. With ``member_phone``, up to ``use_points`` points are
    redeemed and points are earned on the amount paid.
    """
    return await service.place_order(order_data)


@app.get(
    "/api/orders",
    response_model=OrderListResponse,
    tags=["Orders"],
    summary="List Orders",
)
async def list_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    status: Optional[str] = Query(None),
    store: BaseStore = Depends(get_store),
) -> OrderListResponse:
    """Retrieve paginated list of orders, newest first."""
    status_enum = None
    if status:
        try:
            status_enum = OrderStatus(status.upper())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status. Options: {[s.value for s in OrderStatus]}"
            )

    total, orders = await store.list_orders(skip=skip, limit=limit, status=status_enum)
    return OrderListResponse(total=total, orders=orders)


@app.get(
    "/api/orders/{order_id}",
    response_model=OrderRead,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
)
async def get_order(order_id: int, store: BaseStore = Depends(get_store)) -> OrderRead:
    """Get a specific order by ID."""
    return await store.get_order(order_id)


@app.patch(
    "/api/orders/{order_id}/status",
    response_model=OrderRead,
    responses={404: {"model": ErrorResponse}},
    tags=["Orders"],
    summary="Update Order Status",
)
async def update_order_status(
    order_id: int,
    update: OrderStatusUpdate,
    store: BaseStore = Depends(get_store),
) -> OrderRead:
    order = await store.update_order_status(order_id, update.status)
    logger.info(f"Order #{order.id} status -> {order.status.value}")
    return order


# =============================================================================
# ERROR HANDLERS
# =============================================================================

@app.exception_handler(RestaurantError)
async def restaurant_error_handler(request: Request, exc: RestaurantError) -> JSONResponse:
    """Map business errors onto their HTTP status."""
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all exception handler."""
    logger.exception(f"Unhandled exception: {exc}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": str(exc) if get_settings().debug else "An unexpected error occurred",
        },
    )


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    import uvicorn

    uvicorn.run(
        "restaurant_api.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
