from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, List, Optional
from urllib.parse import urlencode

from fastapi import FastAPI, Form, Request
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from smartbill.config import settings
from smartbill.db.kvstore import SqliteKV
from smartbill.errors import BillingError
from smartbill.services.billing import BillingSession
from smartbill.services.invoice_pdf import generate_invoice_pdf
from smartbill.services.outcome import Outcome

BASE_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = BASE_DIR / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))


def _redirect(path: str, msg: str = "") -> RedirectResponse:
    url = f"{path}?{urlencode({'msg': msg})}" if msg else path
    return RedirectResponse(url=url, status_code=303)


def _message(outcome: Outcome, done: str) -> str:
    if outcome.confirmation_required:
        return "Please confirm this action."
    return " ".join([done, *outcome.warnings])


def create_app(kv: Any = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = kv
        if store is None:
            store = SqliteKV(settings.db_path)
            store.init_db()
        app.state.billing = BillingSession.open(store)
        yield

    app = FastAPI(title="SmartBill Pro", lifespan=lifespan)

    def _session(request: Request) -> BillingSession:
        return request.app.state.billing

    def _render(request: Request, name: str, ctx: dict[str, Any]) -> HTMLResponse:
        session = _session(request)
        base = {
            "store_name": settings.store_name,
            "currency": settings.currency,
            "startup_warnings": session.startup_warnings,
        }
        base.update(ctx)
        return templates.TemplateResponse(request, name, base)

    # ---------------- billing screen ----------------

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request, q: str = "", cq: str = "", msg: str = ""):
        session = _session(request)
        with session.lock:
            view = session.view(catalog_query=cq, cart_query=q)
            return _render(request, "index.html", {**view, "q": q, "cq": cq, "message": msg})

    # ---------------- cart ----------------

    @app.post("/cart/add")
    def cart_add(request: Request, product_id: str = Form(...), qty: str = Form("1")):
        session = _session(request)
        try:
            with session.lock:
                outcome = session.cart.add_item(product_id, qty)
        except BillingError as e:
            return _redirect("/", str(e))
        line = outcome.value
        return _redirect("/", _message(outcome, f"Added {line.name} (now {line.quantity})."))

    @app.post("/cart/{index}/edit")
    def cart_edit(request: Request, index: int, qty: str = Form(...)):
        session = _session(request)
        try:
            with session.lock:
                outcome = session.cart.edit_quantity(index, qty)
        except BillingError as e:
            return _redirect("/", str(e))
        return _redirect("/", _message(outcome, f"{outcome.value.name}: quantity {outcome.value.quantity}."))

    @app.post("/cart/{index}/delete")
    def cart_delete(request: Request, index: int, confirmed: bool = Form(False)):
        session = _session(request)
        try:
            with session.lock:
                outcome = session.cart.remove_line(index, confirmed=confirmed)
        except BillingError as e:
            return _redirect("/", str(e))
        done = f"Removed {outcome.value.name}." if outcome.ok else ""
        return _redirect("/", _message(outcome, done))

    @app.post("/cart/clear")
    def cart_clear(request: Request, confirmed: bool = Form(False)):
        session = _session(request)
        with session.lock:
            outcome = session.cart.clear_all(confirmed=confirmed)
        return _redirect("/", _message(outcome, "Bill cleared, stock returned to catalog."))

    @app.post("/rates")
    def rates(
        request: Request,
        discount_rate: Optional[str] = Form(None),
        tax_rate: Optional[str] = Form(None),
    ):
        session = _session(request)
        try:
            with session.lock:
                outcome = session.cart.set_rates(discount_rate=discount_rate, tax_rate=tax_rate)
        except BillingError as e:
            return _redirect("/", str(e))
        return _redirect("/", _message(outcome, "Rates updated."))

    # ---------------- catalog ----------------

    @app.get("/catalog", response_class=HTMLResponse)
    def catalog(request: Request, msg: str = ""):
        session = _session(request)
        with session.lock:
            items = list(session.catalog.items)
        return _render(request, "catalog.html", {"items": items, "message": msg})

    @app.post("/catalog/add")
    def catalog_add(
        request: Request,
        product_id: str = Form(...),
        name: str = Form(...),
        price: str = Form(...),
        stock: str = Form("0"),
    ):
        session = _session(request)
        try:
            with session.lock:
                outcome = session.catalog.add(product_id, name, price, stock)
        except BillingError as e:
            return _redirect("/catalog", str(e))
        return _redirect("/catalog", _message(outcome, f"{outcome.value.name} added to catalog."))

    @app.post("/catalog/save")
    def catalog_save(
        request: Request,
        ids: List[str] = Form([]),
        names: List[str] = Form([]),
        prices: List[str] = Form([]),
        stocks: List[str] = Form([]),
    ):
        rows = [
            {"id": pid, "name": name, "price": price, "stock": stock}
            for pid, name, price, stock in zip(ids, names, prices, stocks)
        ]
        session = _session(request)
        with session.lock:
            outcome = session.catalog.replace_all(rows)
        return _redirect("/catalog", _message(outcome, f"Catalog saved ({len(outcome.value)} items)."))

    @app.post("/catalog/{index}/remove")
    def catalog_remove(request: Request, index: int, confirmed: bool = Form(False)):
        session = _session(request)
        try:
            with session.lock:
                outcome = session.catalog.remove(index, confirmed=confirmed)
        except BillingError as e:
            return _redirect("/catalog", str(e))
        done = f"{outcome.value.name} removed from catalog." if outcome.ok else ""
        return _redirect("/catalog", _message(outcome, done))

    # ---------------- print / export ----------------

    @app.get("/invoice.pdf", response_class=FileResponse)
    def invoice_pdf(request: Request):
        session = _session(request)
        with session.lock:
            snapshot = session.invoice_snapshot()
        path = generate_invoice_pdf(snapshot)
        return FileResponse(path, media_type="application/pdf", filename=Path(path).name)

    return app


app = create_app()
