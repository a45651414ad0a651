"""
Receipt rendering and thermal-safe text sanitization.

render() lays an Order out as a fixed-width plain-text receipt in
Portuguese. sanitize_for_thermal() strips anything a thermal printer
could interpret as a command when the text is pushed through a generic
print path:

    - ESC/POS command sequences as raw bytes (ESC @, GS V A n, ...)
    - the same sequences written out literally ("\\x1D\\x56", "0x1D0x56...")
    - other control bytes except newline, carriage return and tab
    - accented and typographic characters, mapped to plain ASCII

Only trailing newlines are added. The spooler does the device framing
(paper cut, feed), so no control codes are ever injected here.

sanitize_for_thermal() is idempotent: sanitizing sanitized text
returns it unchanged.
"""

from __future__ import annotations

import re
import textwrap
import unicodedata
from datetime import datetime
from typing import List, Optional

from models.order import Order

PLACEHOLDER = "Não informado"
TRAILING_FEED_LINES = 3

# Raw ESC/POS: ESC @ (init), then ESC/GS/FS + command byte + optional parameter
_RAW_INIT = re.compile("\x1b@")
_RAW_COMMAND = re.compile("[\x1b\x1c\x1d][!-~][\x00-\xff]?")

# Literal escapes, e.g. the text "\x1D\x56\x41\x03" or "0x1D0x56A"
_LITERAL_HEX_PAIR = re.compile(r"0x1[dD]\s*0x56\w*")
_LITERAL_HEX_ESCAPE = re.compile(r"\\x[0-9A-Fa-f]{2}")
_LITERAL_NEWLINE = re.compile(r"\\r\\n|\\n")
_LITERAL_BACKSLASH = re.compile(r"\\[^nr]|\\$")

_CONTROL_BYTES = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")

_TYPOGRAPHY = str.maketrans({
    "‘": "'",
    "’": "'",
    "‚": "'",
    "“": '"',
    "”": '"',
    "„": '"',
    "–": "-",
    "—": "-",
    "•": "*",
    "\u00a0": " ",
    "…": "...",
})


# =============================================================================
# Sanitization
# =============================================================================

def _to_ascii(text: str) -> str:
    text = text.translate(_TYPOGRAPHY)
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.encode("ascii", "replace").decode("ascii")


def _sanitize_pass(text: str) -> str:
    text = _RAW_INIT.sub("", text)
    text = _RAW_COMMAND.sub("", text)
    text = _LITERAL_HEX_PAIR.sub("", text)
    text = _LITERAL_HEX_ESCAPE.sub("", text)
    text = _LITERAL_NEWLINE.sub("\n", text)
    text = _LITERAL_BACKSLASH.sub(" ", text)
    text = text.replace("\r\n", "\n")
    text = _CONTROL_BYTES.sub("", text)
    return _to_ascii(text)


def sanitize_for_thermal(text: str) -> str:
    """
    Make text safe to print on a thermal receipt printer.

    Args:
        text: Rendered receipt or caller-supplied print text

    Returns:
        ASCII text without control sequences, ending in exactly
        TRAILING_FEED_LINES newlines
    """
    # Removing one sequence can join the pieces of another, so repeat until stable
    previous = None
    for _ in range(10):
        if text == previous:
            break
        previous = text
        text = _sanitize_pass(text)
    return text.rstrip("\n") + "\n" * TRAILING_FEED_LINES


# =============================================================================
# Formatting helpers
# =============================================================================

def format_brl(value: float) -> str:
    """35.9 -> 'R$ 35,90'; 1234.5 -> 'R$ 1.234,50'."""
    formatted = f"{value:,.2f}"
    return "R$ " + formatted.replace(",", "_").replace(".", ",").replace("_", ".")


def center_text(text: str, width: int) -> str:
    return text.strip().center(width).rstrip()


def right_align(text: str, width: int) -> str:
    return text.rjust(width)


def wrap_text(text: str, width: int) -> List[str]:
    """Word-wrap each paragraph of ``text``; keeps blank lines inside it."""
    lines: List[str] = []
    for paragraph in text.splitlines() or [""]:
        if not paragraph.strip():
            lines.append("")
            continue
        lines.extend(textwrap.wrap(paragraph.strip(), width=width, break_long_words=True))
    return lines


# =============================================================================
# Renderer
# =============================================================================

class ReceiptRenderer:
    """
    Lays out receipts at a fixed column width.

    Attributes:
        restaurant_name: Header line
        width: Characters per line (32 for 58mm paper, 48 for 80mm)
    """

    def __init__(self, restaurant_name: str = "JYZE DELIVERY", width: int = 32):
        if width < 16:
            raise ValueError("width must be at least 16 columns")
        self.restaurant_name = restaurant_name
        self.width = width

    def render(self, order: Order) -> str:
        """
        Render an order as a receipt.

        Missing optional fields print as "Não informado". The date line
        shows when the order was placed, not when it was printed, so
        rendering the same order twice gives the same text.
        """
        width = self.width
        heavy = "=" * width
        light = "-" * width

        lines = [
            heavy,
            center_text(self.restaurant_name, width),
            heavy,
            f"PEDIDO #{order.id}",
            f"DATA: {self._format_date(order.created_at)}",
            light,
            *wrap_text(f"CLIENTE: {order.customer_name or PLACEHOLDER}", width),
            "ENDEREÇO DE ENTREGA:",
            *wrap_text(order.address or PLACEHOLDER, width),
            light,
            "PEDIDO:",
            *wrap_text(order.items or PLACEHOLDER, width),
        ]
        if order.notes:
            lines.extend(["", "OBSERVAÇÕES:", *wrap_text(order.notes, width)])
        lines.extend([
            light,
            *wrap_text(f"PAGAMENTO: {order.payment_method or PLACEHOLDER}", width),
            right_align(f"TOTAL: {format_brl(order.total)}", width),
            heavy,
            center_text("OBRIGADO PELA PREFERÊNCIA!", width),
            heavy,
        ])
        return "\n".join(lines) + "\n"

    def render_test_page(self, printer_name: str, now: Optional[datetime] = None) -> str:
        """Canned page used by the printer test endpoints."""
        now = now or datetime.now()
        width = self.width
        lines = [
            "=" * width,
            center_text(self.restaurant_name, width),
            center_text("TESTE DE IMPRESSÃO", width),
            "=" * width,
            f"Impressora: {printer_name}",
            f"Data: {now.strftime('%d/%m/%Y %H:%M:%S')}",
            "-" * width,
            "Acentuação: ção ã é ü",
            "Colunas: " + "1234567890"[: max(0, width - 9)],
            "-" * width,
            center_text("Se você consegue ler isto,", width),
            center_text("a impressora está funcionando.", width),
            "=" * width,
        ]
        return "\n".join(lines) + "\n"

    @staticmethod
    def _format_date(value: Optional[datetime]) -> str:
        if value is None:
            return PLACEHOLDER
        return value.strftime("%d/%m/%Y %H:%M")
