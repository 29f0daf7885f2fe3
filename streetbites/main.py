import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import auth, crud, errors, orders, schemas
from .config import Settings, get_settings
from .db import Base, SessionLocal, engine, get_db

settings = get_settings()

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    if settings.seed_menu:
        db = SessionLocal()
        try:
            crud.seed_menu(db)
        finally:
            db.close()
    logger.info("%s started", settings.app_name)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)


# ----- Error envelopes -----

@app.exception_handler(errors.OrderServiceError)
async def order_service_error_handler(request: Request, exc: errors.OrderServiceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    field_errors = []
    for error in exc.errors():
        location = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        field_errors.append({"field": ".".join(location), "message": error["msg"]})
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Validation failed",
            "code": "ValidationFailed",
            "errors": field_errors,
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"success": False, "message": "Internal server error", "code": "InternalError"}
    current_settings = request.app.dependency_overrides.get(get_settings, get_settings)()
    if current_settings.debug:
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# ----- Infra -----

@app.get("/health")
def health():
    return {"status": "ok", "service": "streetbites"}


# ----- Public order endpoints -----

@app.post(
    "/api/orders",
    response_model=schemas.Envelope[schemas.OrderReceipt],
    status_code=201,
)
def submit_order(
    order_in: schemas.OrderCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    order = orders.submit_order(db, order_in, settings=settings)
    return schemas.Envelope[schemas.OrderReceipt](
        message="Order created",
        data=schemas.OrderReceipt.model_validate(order),
    )


@app.get("/api/orders/{order_number}", response_model=schemas.Envelope[schemas.OrderOut])
def get_order_by_number(order_number: str, db: Session = Depends(get_db)):
    order = orders.get_order_by_number(db, order_number)
    return schemas.Envelope[schemas.OrderOut](data=schemas.OrderOut.model_validate(order))


# ----- Admin order endpoints -----

@app.get("/api/orders", response_model=schemas.ListEnvelope[schemas.OrderOut])
def list_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: auth.Identity = Depends(auth.get_current_user),
):
    limit = min(limit or settings.default_page_size, settings.max_page_size)
    items, pagination = orders.list_orders(db, status=status, page=page, limit=limit)
    return schemas.ListEnvelope[schemas.OrderOut](
        data=[schemas.OrderOut.model_validate(order) for order in items],
        pagination=pagination,
    )


@app.get("/api/orders/admin/{order_id}", response_model=schemas.Envelope[schemas.OrderOut])
def get_order(
    order_id: int,
    db: Session = Depends(get_db),
    _: auth.Identity = Depends(auth.get_current_user),
):
    order = orders.get_order(db, order_id)
    return schemas.Envelope[schemas.OrderOut](data=schemas.OrderOut.model_validate(order))


@app.put("/api/orders/{order_id}/status", response_model=schemas.Envelope[schemas.OrderOut])
def update_order_status(
    order_id: int,
    status_in: schemas.OrderStatusUpdate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    current_user: auth.Identity = Depends(auth.get_current_user),
):
    order = orders.update_status(
        db,
        order_id,
        status_in.status,
        estimated_ready_time=status_in.estimated_ready_time,
        settings=settings,
    )
    logger.info("Status of order %s set by user %s", order.order_number, current_user.user_id)
    return schemas.Envelope[schemas.OrderOut](
        message="Order status updated",
        data=schemas.OrderOut.model_validate(order),
    )


@app.put("/api/orders/{order_id}", response_model=schemas.Envelope[schemas.OrderOut])
def update_order(
    order_id: int,
    order_in: schemas.OrderUpdate,
    db: Session = Depends(get_db),
    _: auth.Identity = Depends(auth.get_current_user),
):
    order = orders.update_details(db, order_id, order_in)
    return schemas.Envelope[schemas.OrderOut](
        message="Order updated",
        data=schemas.OrderOut.model_validate(order),
    )


@app.delete("/api/orders/{order_id}", response_model=schemas.Envelope[dict])
def delete_order(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: auth.Identity = Depends(auth.get_current_user),
):
    order_number = orders.delete_order(db, order_id)
    logger.info("Order %s deleted by user %s", order_number, current_user.user_id)
    return schemas.Envelope[dict](message="Order deleted", data={"orderNumber": order_number})
