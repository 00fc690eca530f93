from datetime import date

from smartbill.config import settings


def money(v: float) -> str:
    return f"{settings.currency}{v:.{settings.decimals}f}"


def discount_money(v: float) -> str:
    return f"-{money(v)}" if v > 0 else money(v)


def tax_money(v: float) -> str:
    return f"+{money(v)}" if v > 0 else money(v)


def invoice_date(d: date) -> str:
    return f"{d.strftime('%B')} {d.day}, {d.year}"
