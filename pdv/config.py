"""Runtime configuration defaults for persistence, printing and logging."""

from __future__ import annotations

import os

DB_PATH = os.environ.get("PDV_DB_PATH", "data/pdv.db")

STORE_NAME = "PASTEL NETO"
CURRENCY_SYMBOL = "R$"

# Kitchen/PDV screens re-check the store for changes made by other terminals.
FEED_POLL_SECONDS = 2.0

LOG_PATH = os.environ.get("PDV_LOG_PATH", "/tmp/pdv-debug.log")
LOG_LEVEL = os.environ.get("PDV_LOG_LEVEL", "INFO")

PRINTER_USB_VENDOR_ID = 0x28E9
PRINTER_USB_PRODUCT_ID = 0x0289
PRINTER_WIDTH_PX = 576
PRINTER_FONT_SIZE = 24
PRINTER_FONT_PATH = "/System/Library/Fonts/Menlo.ttc"
PRINTER_LEFT_INDENT_PX = 8
PRINTER_RECEIPT_COLUMNS = 42
