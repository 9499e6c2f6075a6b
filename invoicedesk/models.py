from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Credentials(BaseModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class SessionStatus(str, Enum):
    UNINITIALIZED = "uninitialized"
    LOGGED_OUT = "logged_out"
    LOGGED_IN = "logged_in"


class SessionView(BaseModel):
    """Read-only projection of the session.

    A logged-out view is only authoritative once ``initialized`` is true.
    """

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    is_logged_in: bool = False
    initialized: bool = False
    status: SessionStatus = SessionStatus.UNINITIALIZED


class TokenPair(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(alias="accessToken")
    refresh_token: str = Field(alias="refreshToken")


class LoginForm(BaseModel):
    username: str
    password: str


class SignupForm(BaseModel):
    username: str
    password: str


class InvoiceStatus(str, Enum):
    PAID = "Paid"
    UNPAID = "Unpaid"
    OVERDUE = "Overdue"


class InvoiceLine(BaseModel):
    item: str
    quantity: int
    price: float


class Invoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Union[int, str]
    invoice_number: str = Field(alias="invoiceNumber")
    customer: str
    amount: float
    date: str
    due_date: str = Field(alias="dueDate")
    status: InvoiceStatus
    description: str = ""
    items: List[InvoiceLine] = Field(default_factory=list)


class NewInvoiceItem(BaseModel):
    item: str
    # form inputs arrive as strings
    qty: float
    price: float


class NewInvoice(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer: str
    date: str
    due_date: str = Field(alias="dueDate")
    description: Optional[str] = None
    items: List[NewInvoiceItem]

    def payload(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        data["items"] = [
            {"item": it.item, "qty": _number(it.qty), "price": _number(it.price)}
            for it in self.items
        ]
        return data


def _number(value: float) -> Union[int, float]:
    return int(value) if float(value).is_integer() else value


class PageResult(BaseModel):
    page: str
    redirect: Optional[str] = None
    error: Optional[str] = None
    loading: bool = False
    data: Dict[str, Any] = Field(default_factory=dict)
