"""
Profile documents linked to an account at signup.

CustomerDoc    — `customers` collection (role CUSTOMER)
TechnicianDoc  — `technicians` collection (role TECHNICIAN)

Both carry ``account_id`` pointing back at the owning account and are
written in the same transaction as the account itself.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from schemas.models.base import MongoBaseModel, PyObjectId


class AddressDoc(BaseModel):
    address_line: str
    apartment: Optional[str] = None
    city: str
    state: str
    zip: str


class CustomerDoc(MongoBaseModel):
    """
    Document model for the `customers` collection.

    status values: ACTIVE (only value set by signup)
    """

    account_id: Optional[PyObjectId] = None
    customer_code: str
    first_name: str
    last_name: str
    email: str
    phone: str
    status: str = "ACTIVE"
    address: AddressDoc
    created_at: Optional[datetime] = None


class TechnicianDoc(MongoBaseModel):
    """Document model for the `technicians` collection."""

    account_id: Optional[PyObjectId] = None
    name: str
    email: str
    phone: str
    verified: bool = True
    created_at: Optional[datetime] = None
