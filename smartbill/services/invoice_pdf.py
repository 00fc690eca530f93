from __future__ import annotations

import os
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from smartbill.config import settings
from smartbill.services.billing import InvoiceSnapshot
from smartbill.utils.formatters import invoice_date

# Helvetica has no rupee glyph, amounts are printed with the ISO code instead
PDF_CURRENCY = "INR" if settings.currency == "₹" else settings.currency


def _amount(v: float) -> str:
    return f"{v:.{settings.decimals}f}"


def generate_invoice_pdf(snapshot: InvoiceSnapshot, export_dir: Optional[str] = None) -> str:
    export_dir = export_dir or settings.export_dir
    os.makedirs(export_dir, exist_ok=True)

    filename = f"invoice_{snapshot.issued_on:%Y%m%d}.pdf"
    path = os.path.join(export_dir, filename)

    c = canvas.Canvas(path, pagesize=A4)
    w, h = A4

    y = h - 50
    c.setFont("Helvetica-Bold", 14)
    c.drawString(40, y, settings.store_name.upper())
    y -= 20

    c.setFont("Helvetica", 11)
    c.drawString(40, y, f"Date: {invoice_date(snapshot.issued_on)}")
    y -= 16
    c.drawString(40, y, f"Currency: {PDF_CURRENCY}")
    y -= 24

    # header
    c.setFont("Helvetica-Bold", 10)
    c.drawString(40, y, "Item")
    c.drawString(310, y, "Qty")
    c.drawString(360, y, "Price")
    c.drawString(440, y, "Total")
    y -= 10
    c.line(40, y, 550, y)
    y -= 16

    c.setFont("Helvetica", 10)
    for line in snapshot.lines:
        c.drawString(40, y, line.name[:45])
        c.drawRightString(340, y, str(line.quantity))
        c.drawRightString(420, y, _amount(line.price))
        c.drawRightString(550, y, _amount(line.line_total))
        y -= 14
        if y < 140:
            c.showPage()
            y = h - 50
            c.setFont("Helvetica", 10)

    t = snapshot.totals
    y -= 10
    c.line(40, y, 550, y)
    y -= 18
    for label, value in (
        ("Subtotal", _amount(t.subtotal)),
        (f"Discount ({snapshot.discount_rate:g}%)", f"-{_amount(t.discount_amount)}"),
        ("After discount", _amount(t.discounted_total)),
        (f"Tax ({snapshot.tax_rate:g}%)", f"+{_amount(t.tax_amount)}"),
    ):
        c.drawString(360, y, label)
        c.drawRightString(550, y, value)
        y -= 14

    y -= 4
    c.setFont("Helvetica-Bold", 12)
    c.drawRightString(550, y, f"TOTAL: {_amount(t.final_total)} {PDF_CURRENCY}")

    c.save()
    return path
