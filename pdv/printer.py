"""Receipt and cash-report rendering for the thermal printer."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Iterable

from pdv.checkout import Receipt
from pdv.config import (
    PRINTER_FONT_PATH,
    PRINTER_FONT_SIZE,
    PRINTER_LEFT_INDENT_PX,
    PRINTER_RECEIPT_COLUMNS,
    PRINTER_USB_PRODUCT_ID,
    PRINTER_USB_VENDOR_ID,
    PRINTER_WIDTH_PX,
    STORE_NAME,
)
from pdv.constant import CASH_MOVEMENT_LABELS, PAYMENT_METHOD_LABELS, RECEIPT_FOOTER, RECEIPT_TITLE
from pdv.models import CashMovement, PaymentMethod
from pdv.money import format_money

_LINE_EXTRA_PX = 8
_TAIL_SPACER_PX = 60
_FONT_OVERRIDE_ENV = "PDV_PRINTER_FONT_PATH"
# Receipt columns only line up with a monospace face.
_LINUX_FONT_FALLBACKS = (
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/liberation/LiberationMono-Regular.ttf",
)


def _separator(width: int) -> str:
    return "-" * width


def _two_columns(left: str, right: str, width: int) -> str:
    room = max(1, width - len(right) - 1)
    if len(left) > room:
        left = left[: max(1, room - 1)] + "~"
    return f"{left}{' ' * (width - len(left) - len(right))}{right}"


def _local_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone().strftime("%d/%m/%Y %H:%M:%S")


def format_receipt_text(receipt: Receipt, width: int = PRINTER_RECEIPT_COLUMNS) -> str:
    """Plain-text sale receipt; tendered amount and change only appear for cash."""
    lines = [
        STORE_NAME.center(width).rstrip(),
        RECEIPT_TITLE.center(width).rstrip(),
        _separator(width),
        f"Order: {receipt.order_number}",
        f"Date: {_local_timestamp(receipt.created_at)}",
        _separator(width),
    ]
    for item in receipt.lines:
        lines.append(_two_columns(f"{item.quantity}x {item.name}", format_money(item.line_total), width))
    lines.append(_separator(width))
    lines.append(_two_columns("TOTAL:", format_money(receipt.total), width))
    lines.append(f"Payment: {PAYMENT_METHOD_LABELS[receipt.method.value].upper()}")
    if receipt.method is PaymentMethod.CASH:
        lines.append(f"Amount paid: {format_money(receipt.amount_paid)}")
        lines.append(f"Change: {format_money(receipt.change_due)}")
    lines.append(_separator(width))
    lines.extend(text.center(width).rstrip() for text in RECEIPT_FOOTER)
    return "\n".join(lines)


def format_close_report(
    movements: Iterable[CashMovement],
    balance: Decimal,
    printed_at: datetime | None = None,
    width: int = PRINTER_RECEIPT_COLUMNS,
) -> str:
    """Plain-text end-of-day cash report."""
    printed_at = printed_at or datetime.now(timezone.utc)
    lines = [
        f"{STORE_NAME} - CASH CLOSE",
        _local_timestamp(printed_at),
        "=" * width,
        _two_columns("TOTAL IN DRAWER:", format_money(balance), width),
        "",
        "MOVEMENTS OF THE DAY:",
    ]
    for movement in movements:
        label = CASH_MOVEMENT_LABELS.get(movement.movement_type.value, movement.movement_type.value)
        sign = "-" if movement.movement_type.value == "withdrawal" else "+"
        lines.append(_two_columns(label.upper(), f"{sign}{format_money(movement.amount)}", width))
        if movement.description:
            lines.append(f"  {movement.description}")
    lines.append("=" * width)
    return "\n".join(lines)


def _font_candidates() -> list[str]:
    """Env override, configured path, then monospace fallbacks; blanks and repeats dropped."""
    ordered = [os.environ.get(_FONT_OVERRIDE_ENV, "").strip(), PRINTER_FONT_PATH, *_LINUX_FONT_FALLBACKS]
    return list(dict.fromkeys(path for path in ordered if path))


def resolve_printer_font_path() -> str:
    candidates = _font_candidates()
    found = next((path for path in candidates if Path(path).is_file()), None)
    if found is None:
        raise RuntimeError(f"No receipt font found; set {_FONT_OVERRIDE_ENV}. Tried: {', '.join(candidates)}")
    return found


def _load_font() -> object:
    from PIL import ImageFont

    return ImageFont.truetype(resolve_printer_font_path(), PRINTER_FONT_SIZE)


def check_printer_dependencies() -> tuple[bool, str]:
    """Startup check for the status line: escpos importable and the receipt font loadable."""
    try:
        import escpos.printer  # noqa: F401

        _load_font()
    except (ImportError, OSError, RuntimeError) as exc:
        return (False, f"Printing disabled: {exc}")
    return (True, f"Printer ready ({Path(resolve_printer_font_path()).name})")


def _render_line(text: str, font: object) -> object:
    from PIL import Image, ImageDraw

    canvas_height = PRINTER_FONT_SIZE + _LINE_EXTRA_PX
    img = Image.new("1", (PRINTER_WIDTH_PX, canvas_height), color=1)
    if not text.strip():
        return img
    draw = ImageDraw.Draw(img)
    bbox = draw.textbbox((0, 0), text, font=font)
    text_height = bbox[3] - bbox[1]
    # Offset by bbox top so descenders are not clipped.
    y = (canvas_height - text_height) // 2 - bbox[1]
    draw.text((PRINTER_LEFT_INDENT_PX, y), text, font=font, fill=0)
    return img


def _render_spacer(height_px: int) -> object:
    from PIL import Image

    return Image.new("1", (PRINTER_WIDTH_PX, max(1, height_px)), color=1)


def _open_printer() -> object:
    try:
        from escpos.printer import Usb
    except Exception as exc:
        raise RuntimeError(f"Printer dependencies unavailable: {exc}") from exc
    return Usb(PRINTER_USB_VENDOR_ID, PRINTER_USB_PRODUCT_ID)


def print_document(text: str, printer: object | None = None) -> None:
    """Rasterize ``text`` line by line, print it and cut the paper."""
    if not text.strip():
        return
    font = _load_font()
    if printer is None:
        printer = _open_printer()
    for line in text.split("\n"):
        printer.image(_render_line(line, font))
    printer.image(_render_spacer(_TAIL_SPACER_PX))
    printer.cut()


def print_receipt(receipt: Receipt, printer: object | None = None) -> None:
    print_document(format_receipt_text(receipt), printer=printer)


def print_close_report(
    movements: Iterable[CashMovement],
    balance: Decimal,
    printer: object | None = None,
) -> None:
    print_document(format_close_report(movements, balance), printer=printer)
