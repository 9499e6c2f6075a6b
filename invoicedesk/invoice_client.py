from __future__ import annotations
from typing import Any, List

from .api_client import ApiClient
from .models import Invoice, NewInvoice


class InvoiceClient:
    def __init__(self, api: ApiClient):
        self.api = api

    async def list_invoices(self) -> List[Invoice]:
        r = await self.api.get("/invoices")
        data = r.json()
        return [Invoice.model_validate(x) for x in data.get("invoices") or []]

    async def create_invoice(self, invoice: NewInvoice) -> Any:
        r = await self.api.post("/invoices", json=invoice.payload())
        try:
            return r.json()
        except ValueError:
            return r.text
