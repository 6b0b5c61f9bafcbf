"""Editable static labels, badge styles and seed catalog."""

from __future__ import annotations

# Kitchen board metadata per order status. Higher urgency sorts first.
ORDER_STATUS_META: dict[str, dict[str, str | int | None]] = {
    "received": {
        "label": "Received",
        "urgency": 3,
        "action_label": "Start preparing",
        "badge_style": "bold #0b1f3a on #7fb2f0",
    },
    "preparing": {
        "label": "Preparing",
        "urgency": 2,
        "action_label": "Mark ready",
        "badge_style": "bold #2b1600 on #f0a04b",
    },
    "ready": {
        "label": "Ready",
        "urgency": 1,
        "action_label": "Mark delivered",
        "badge_style": "bold #0b1f0f on #5fbf72",
    },
    "delivered": {
        "label": "Delivered",
        "urgency": 0,
        "action_label": None,
        "badge_style": "bold #1a1a1a on #b0b0b0",
    },
    "cancelled": {
        "label": "Cancelled",
        "urgency": 0,
        "action_label": None,
        "badge_style": "bold #ffffff on #b23a48",
    },
}

PAYMENT_METHOD_LABELS: dict[str, str] = {
    "cash": "Cash",
    "pix": "PIX",
    "card": "Card",
}

TABLE_STATUS_META: dict[str, dict[str, str]] = {
    "available": {"label": "Available", "badge_style": "bold #0b1f0f on #5fbf72"},
    "occupied": {"label": "Occupied", "badge_style": "bold #ffffff on #b23a48"},
    "reserved": {"label": "Reserved", "badge_style": "bold #2b1600 on #e8c547"},
}

CASH_MOVEMENT_LABELS: dict[str, str] = {
    "open": "Drawer opened",
    "close": "Drawer closed",
    "sale": "Sale",
    "withdrawal": "Withdrawal",
}

ORDER_NUMBER_PREFIX_KITCHEN = "PED"
ORDER_NUMBER_PREFIX_SALE = "VEN"

RECEIPT_TITLE = "SALE RECEIPT"
RECEIPT_FOOTER = ("Thank you for your visit!", "Come back soon!")

# Installed by persistence.seed_defaults() on an empty store.
SEED_PRODUCTS: list[dict[str, str]] = [
    {"name": "Meat Pastel", "price": "8.50", "category": "Pastels"},
    {"name": "Cheese Pastel", "price": "8.00", "category": "Pastels"},
    {"name": "Chicken Catupiry Pastel", "price": "9.50", "category": "Pastels"},
    {"name": "Palm Heart Pastel", "price": "9.00", "category": "Pastels"},
    {"name": "Banana Nutella Pastel", "price": "11.00", "category": "Sweet Pastels"},
    {"name": "Guava Cheese Pastel", "price": "10.00", "category": "Sweet Pastels"},
    {"name": "Sugarcane Juice 500ml", "price": "7.00", "category": "Drinks"},
    {"name": "Soda Can", "price": "6.00", "category": "Drinks"},
    {"name": "Mineral Water", "price": "4.00", "category": "Drinks"},
]

SEED_TABLE_COUNT = 8
