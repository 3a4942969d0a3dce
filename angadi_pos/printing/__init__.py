from .receipt import (
    ReceiptPrinter,
    HtmlReceiptPrinter,
    build_receipt_payload,
    render_receipt_html,
)

__all__ = [
    "ReceiptPrinter",
    "HtmlReceiptPrinter",
    "build_receipt_payload",
    "render_receipt_html",
]
