from decimal import Decimal

from sqlalchemy.orm import Session

from . import models

ORDER_COUNTER = "orders"


def get_menu_item(db: Session, item_id: int):
    return db.query(models.MenuItem).filter(models.MenuItem.id == item_id).first()


def create_menu_category(db: Session, name: str, description=None, sort_order: int = 0):
    category = models.MenuCategory(name=name, description=description, sort_order=sort_order)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def create_menu_item(db: Session, item_data):
    item = models.MenuItem(
        name=item_data["name"],
        description=item_data.get("description"),
        price=Decimal(str(item_data["price"])),
        category_id=item_data.get("category_id"),
        is_available=item_data.get("is_available", True),
        is_popular=item_data.get("is_popular", False),
        preparation_time=item_data.get("preparation_time"),
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


def update_menu_item(db: Session, item: models.MenuItem, item_data):
    for key in ["name", "description", "price", "is_available", "is_popular", "preparation_time"]:
        if key in item_data:
            setattr(item, key, item_data[key])
    db.commit()
    db.refresh(item)
    return item


def count_orders(db: Session) -> int:
    return db.query(models.Order).count()


def highest_order_sequence(db: Session, prefix: str) -> int:
    numbers = (
        db.query(models.Order.order_number)
        .filter(models.Order.order_number.like(f"{prefix}%"))
        .all()
    )
    suffixes = [number[len(prefix):] for (number,) in numbers]
    return max((int(suffix) for suffix in suffixes if suffix.isdigit()), default=0)


def order_number_taken(db: Session, order_number: str) -> bool:
    return (
        db.query(models.Order.id)
        .filter(models.Order.order_number == order_number)
        .first()
        is not None
    )


# Runs inside the caller's transaction, nothing is committed here. The UPDATE
# holds the counter row lock until the order transaction ends.
def next_order_sequence(db: Session, prefix: str, name: str = ORDER_COUNTER) -> int:
    updated = (
        db.query(models.OrderCounter)
        .filter(models.OrderCounter.name == name)
        .update({models.OrderCounter.value: models.OrderCounter.value + 1}, synchronize_session=False)
    )
    if not updated:
        # First order on this database: continue after the highest existing number.
        value = highest_order_sequence(db, prefix) + 1
        db.add(models.OrderCounter(name=name, value=value))
        db.flush()
        return value
    return (
        db.query(models.OrderCounter.value)
        .filter(models.OrderCounter.name == name)
        .scalar()
    )


def insert_order(db: Session, order: models.Order):
    db.add(order)
    db.commit()
    db.refresh(order)
    return order


def get_order(db: Session, order_id: int):
    return db.query(models.Order).filter(models.Order.id == order_id).first()


def get_order_by_number(db: Session, order_number: str):
    return (
        db.query(models.Order)
        .filter(models.Order.order_number == order_number)
        .first()
    )


def update_order(db: Session, order: models.Order, changes):
    for key, value in changes.items():
        setattr(order, key, value)
    order.updated_at = models.utcnow()
    db.commit()
    db.refresh(order)
    return order


def delete_order(db: Session, order: models.Order):
    db.delete(order)
    db.commit()


def list_orders(db: Session, status=None, page: int = 1, limit: int = 20):
    query = db.query(models.Order)
    if status:
        query = query.filter(models.Order.status == status)
    total = query.count()
    items = (
        query.order_by(models.Order.created_at.desc(), models.Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, total


def seed_menu(db: Session):
    if db.query(models.MenuItem).count() > 0:
        return
    samples = {
        "Burgers": [
            {
                "name": "Classic Smash Burger",
                "description": "Double smashed patty, cheddar, pickles, house sauce.",
                "price": "129.00",
                "preparation_time": 12,
                "is_popular": True,
            },
            {
                "name": "Halloumi Burger",
                "description": "Grilled halloumi, chili mayo, pickled red onion.",
                "price": "119.00",
                "preparation_time": 10,
            },
        ],
        "Tacos": [
            {
                "name": "Carnitas Taco",
                "description": "Slow-cooked pork, salsa verde, cilantro.",
                "price": "45.00",
                "preparation_time": 5,
            },
            {
                "name": "Baja Fish Taco",
                "description": "Beer-battered cod, cabbage slaw, lime crema.",
                "price": "49.00",
                "preparation_time": 7,
            },
        ],
        "Sides": [
            {
                "name": "Loaded Fries",
                "description": "Fries, cheese sauce, jalapenos, crispy onions.",
                "price": "59.00",
                "preparation_time": 8,
            },
            {
                "name": "Lemonade",
                "description": "Fresh-squeezed, lightly sweetened.",
                "price": "35.00",
                "preparation_time": None,
            },
        ],
    }
    for sort_order, (category_name, items) in enumerate(samples.items()):
        category = create_menu_category(db, category_name, sort_order=sort_order)
        for item in items:
            create_menu_item(db, {**item, "category_id": category.id})
