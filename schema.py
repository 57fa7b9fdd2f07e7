"""Catalog, inventory and alert models for the app."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class PricePoint:
    date: str  # YYYY-MM-DD
    price: float


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class MedicineRecord:
    id: int  # primary key
    name: str
    description: str
    price: float  # current catalog price
    category: tuple[str, ...] = ()
    rating: float = 0.0
    reviews: int = 0
    availability: str = 'in-stock'
    pharmacies: tuple[str, ...] = ()  # names of stocking pharmacies
    composition: str = ''
    manufacturer: str = ''
    prescription_required: bool = False
    price_history: tuple[PricePoint, ...] = ()


@dataclass(frozen=True)
class PharmacyRecord:
    id: int  # primary key
    name: str  # unique, referenced by MedicineRecord.pharmacies
    location: str
    phone: str
    address: str
    hours: str
    coordinates: Coordinates
    delivery_radius: float  # km


@dataclass(frozen=True)
class InventoryRecord:
    pharmacy_id: int  # composite primary key
    medicine_id: int  # composite primary key
    stock: int
    price: float  # price at this pharmacy
    last_updated: datetime


@dataclass(frozen=True)
class DiseaseTrendRecord:
    name: str
    trend: str
    type: str  # 'increase' or 'decrease'
    icon: str


@dataclass(frozen=True)
class AlertRecord:
    id: int  # primary key (auto-incremented)
    medicine_id: int
    medicine_name: str
    max_price: float  # fires when the price crosses down to or below this
    email: str
    created_at: datetime
    active: bool = True


@dataclass(frozen=True)
class PriceAlertMessage:
    message: str
    medicine: str
    current_price: float
    target_price: float
    timestamp: str  # ISO-8601
    type: str = field(default='price_alert')
