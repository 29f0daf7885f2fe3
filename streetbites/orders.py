import logging
import math
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import crud, errors, models, schemas
from .config import Settings, get_settings
from .models import OrderStatus

logger = logging.getLogger("orders")

CENTS = Decimal("0.01")

# Contact fields a correction may clear.
NULLABLE_DETAILS = {"email", "special_instructions"}

# Used only when enforce_status_transitions is on.
ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),
    OrderStatus.CANCELLED: set(),
}


def format_order_number(prefix: str, sequence: int) -> str:
    return f"{prefix}{sequence:04d}"


def normalize_order_number(order_number: str) -> str:
    return order_number.strip().upper()


def compute_total(lines) -> Decimal:
    total = sum((line.unit_price * line.quantity for line in lines), Decimal("0"))
    return total.quantize(CENTS)


def preparation_minutes(quantity: int, prep_time, default_prep_time: int) -> int:
    return quantity * (prep_time or default_prep_time)


def estimate_ready_time(now: datetime, line_minutes) -> datetime:
    # Lines cook in parallel, units within a line one after another.
    return now + timedelta(minutes=max(line_minutes, default=0))


def parse_status(value) -> OrderStatus:
    try:
        return OrderStatus(value)
    except (ValueError, TypeError):
        raise errors.ValidationError.for_field(
            "status",
            f"Invalid status '{value}'. Expected one of: "
            + ", ".join(status.value for status in OrderStatus),
            code="InvalidStatus",
        )


def parse_timestamp(value):
    if value is None or isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            raise errors.ValidationError.for_field(
                "estimatedReadyTime", "Invalid date", code="InvalidDate"
            )
    else:
        raise errors.ValidationError.for_field(
            "estimatedReadyTime", "Invalid date", code="InvalidDate"
        )
    if parsed is not None and parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def can_transition(current: OrderStatus, target: OrderStatus) -> bool:
    return current == target or target in ALLOWED_TRANSITIONS[current]


def resolve_lines(db: Session, items_in, settings: Settings):
    lines = []
    line_minutes = []
    for position, item_in in enumerate(items_in):
        menu_item = crud.get_menu_item(db, item_in.menu_item_id)
        if menu_item is None:
            raise errors.InvalidReferenceError(
                f"Menu item with ID {item_in.menu_item_id} was not found",
                errors=[{"field": f"items.{position}.menuItemId", "message": "Menu item not found"}],
            )
        if not menu_item.is_available:
            raise errors.ValidationError.for_field(
                f"items.{position}.menuItemId",
                f'Menu item "{menu_item.name}" is not available',
                code="ItemUnavailable",
            )
        lines.append(
            models.OrderLine(
                position=position,
                menu_item_id=menu_item.id,
                name=menu_item.name,
                quantity=item_in.quantity,
                unit_price=Decimal(menu_item.price),
            )
        )
        line_minutes.append(
            preparation_minutes(
                item_in.quantity, menu_item.preparation_time, settings.default_preparation_time
            )
        )
    return lines, line_minutes


def submit_order(
    db: Session,
    order_in: schemas.OrderCreate,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
):
    settings = settings or get_settings()
    now = now or models.utcnow()

    lines, line_minutes = resolve_lines(db, order_in.items, settings)

    try:
        prefix = settings.order_number_prefix
        order_number = format_order_number(prefix, crud.next_order_sequence(db, prefix))
        # Numbers written outside the counter (imports, manual fixes) are skipped.
        while crud.order_number_taken(db, order_number):
            order_number = format_order_number(prefix, crud.next_order_sequence(db, prefix))
        order = models.Order(
            order_number=order_number,
            customer_name=order_in.customer_name,
            phone=order_in.phone,
            email=order_in.email,
            items=lines,
            total_amount=compute_total(lines),
            status=OrderStatus.PENDING.value,
            estimated_ready_time=estimate_ready_time(now, line_minutes),
            special_instructions=order_in.special_instructions,
            created_at=now,
            updated_at=now,
        )
        crud.insert_order(db, order)
    except IntegrityError:
        db.rollback()
        logger.warning("Order number collision while submitting order for %s", order_in.customer_name)
        raise errors.ConflictError(
            "Could not assign a unique order number, please resubmit",
            code="DuplicateOrderNumber",
        )
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Order %s created: %d line(s), total %s, ready at %s",
        order.order_number,
        len(order.items),
        order.total_amount,
        order.estimated_ready_time.isoformat(),
    )
    return order


def get_order_by_number(db: Session, order_number: str):
    order = crud.get_order_by_number(db, normalize_order_number(order_number))
    if order is None:
        raise errors.NotFoundError("Order not found")
    return order


def get_order(db: Session, order_id: int):
    order = crud.get_order(db, order_id)
    if order is None:
        raise errors.NotFoundError("Order not found")
    return order


def list_orders(db: Session, status=None, page: int = 1, limit: int = 20):
    if page < 1:
        raise errors.ValidationError.for_field("page", "Page must be 1 or greater")
    if limit < 1:
        raise errors.ValidationError.for_field("limit", "Limit must be 1 or greater")
    if status:
        status = parse_status(status).value
    orders, total = crud.list_orders(db, status=status, page=page, limit=limit)
    pagination = schemas.Pagination(current=page, pages=math.ceil(total / limit), total=total)
    return orders, pagination


def update_status(
    db: Session,
    order_id: int,
    status,
    estimated_ready_time=None,
    settings: Optional[Settings] = None,
):
    settings = settings or get_settings()
    new_status = parse_status(status)
    ready_time = parse_timestamp(estimated_ready_time)

    order = get_order(db, order_id)
    current = OrderStatus(order.status)
    if settings.enforce_status_transitions and not can_transition(current, new_status):
        raise errors.ConflictError(
            f"Cannot change status from {current.value} to {new_status.value}",
            code="InvalidTransition",
        )

    changes = {"status": new_status.value}
    if ready_time is not None:
        changes["estimated_ready_time"] = ready_time
    crud.update_order(db, order, changes)
    logger.info("Order %s status %s -> %s", order.order_number, current.value, new_status.value)
    return order


def update_details(db: Session, order_id: int, order_in: schemas.OrderUpdate):
    order = get_order(db, order_id)
    changes = {
        key: value
        for key, value in order_in.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_DETAILS
    }
    if changes:
        crud.update_order(db, order, changes)
        logger.info("Order %s details corrected: %s", order.order_number, ", ".join(sorted(changes)))
    return order


def delete_order(db: Session, order_id: int):
    order = get_order(db, order_id)
    order_number = order.order_number
    crud.delete_order(db, order)
    logger.info("Order %s deleted", order_number)
    return order_number
