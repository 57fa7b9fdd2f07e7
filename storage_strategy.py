"""Storage-related functionality for the app."""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
import logging
import threading

from flask import Flask

from errors import NotFoundError, ValidationError
from schema import (AlertRecord, DiseaseTrendRecord, InventoryRecord,
                    MedicineRecord, PharmacyRecord, PricePoint)
import seed_data

logger = logging.getLogger('medifind.storage')


class StorageStrategy(ABC):
    """Abstract base for catalog, inventory and alert storage."""

    @abstractmethod
    def start_transaction(self):
        """Begin a transaction."""

        raise NotImplementedError()

    @abstractmethod
    def end_transaction(self):
        """Commit/end a transaction."""

        raise NotImplementedError()

    @contextmanager
    def transaction(self):
        """Run the body of a with-block inside a transaction."""

        self.start_transaction()
        try:
            yield self
        finally:
            self.end_transaction()

    @abstractmethod
    def list_medicines(self) -> list[MedicineRecord]:
        """Get every medicine in catalog order."""

        raise NotImplementedError()

    @abstractmethod
    def get_medicine(self, medicine_id: int) -> MedicineRecord | None:
        """Get a medicine by id (or None)."""

        raise NotImplementedError()

    @abstractmethod
    def list_pharmacies(self) -> list[PharmacyRecord]:
        """Get every pharmacy."""

        raise NotImplementedError()

    @abstractmethod
    def get_pharmacy(self, pharmacy_id: int) -> PharmacyRecord | None:
        """Get a pharmacy by id (or None)."""

        raise NotImplementedError()

    @abstractmethod
    def get_pharmacy_by_name(self, name: str) -> PharmacyRecord | None:
        """Get a pharmacy by its exact name (or None)."""

        raise NotImplementedError()

    @abstractmethod
    def list_disease_trends(self) -> list[DiseaseTrendRecord]:
        """Get the disease trend table."""

        raise NotImplementedError()

    @abstractmethod
    def get_inventory(self, pharmacy_id: int,
                      medicine_id: int) -> InventoryRecord | None:
        """Get the inventory entry for a pharmacy/medicine combination."""

        raise NotImplementedError()

    @abstractmethod
    def inventory_for_pharmacy(self,
                               pharmacy_id: int) -> list[InventoryRecord]:
        """Get every inventory entry held by a pharmacy."""

        raise NotImplementedError()

    @abstractmethod
    def inventory_for_medicine(self,
                               medicine_id: int) -> list[InventoryRecord]:
        """Get every pharmacy's inventory entry for a medicine."""

        raise NotImplementedError()

    @abstractmethod
    def add_alert(self, medicine: MedicineRecord, max_price: float,
                  email: str) -> AlertRecord:
        """Store a new active alert and return it with its assigned id."""

        raise NotImplementedError()

    @abstractmethod
    def active_alerts_for(self, medicine_id: int) -> list[AlertRecord]:
        """Get active alerts registered against a medicine."""

        raise NotImplementedError()

    @abstractmethod
    def debug_info(self):
        """Get arbitrary debug information (not for production)."""

        raise NotImplementedError()

    @abstractmethod
    def _save_medicine(self, medicine: MedicineRecord):
        """Subclass must override to replace a medicine table entry."""

        raise NotImplementedError()

    @abstractmethod
    def _save_inventory(self, inventory_record: InventoryRecord):
        """Subclass must override to create or replace an inventory entry."""

        raise NotImplementedError()

    def _now(self) -> datetime:
        """Clock used for timestamps written by this strategy."""

        return datetime.now(timezone.utc)

    def update_inventory(
            self,
            pharmacy_id: int,
            medicine_id: int,
            price: float | None = None,
            stock: int | None = None
    ) -> tuple[MedicineRecord, PharmacyRecord, float | None]:
        """
        Apply an admin inventory update for one pharmacy/medicine pair.

        A price update also becomes the catalog price and is appended to the
        medicine's price history. Callers are expected to hold a transaction.

        Args:
            pharmacy_id (int): the pharmacy being updated
            medicine_id (int): the medicine being updated
            price (float|None): new price, or None to leave it alone
            stock (int|None): new stock count, or None to leave it alone

        Returns:
            (updated medicine, pharmacy, catalog price before the update or
            None if the price was not touched)

        Raises:
            NotFoundError: unknown pharmacy or medicine
            ValidationError: the medicine is not stocked by the pharmacy
        """

        pharmacy = self.get_pharmacy(pharmacy_id)
        if not pharmacy:
            raise NotFoundError('Pharmacy not found')
        medicine = self.get_medicine(medicine_id)
        if not medicine:
            raise NotFoundError('Medicine not found')
        if pharmacy.name not in medicine.pharmacies:
            raise ValidationError('Medicine not available at this pharmacy')

        now = self._now()
        old_price = None
        if price is not None:
            old_price = medicine.price
            medicine = self.__update_medicine_table(medicine, price, now)

        self.__update_inventory_table(pharmacy, medicine, price, stock, now)
        return medicine, pharmacy, old_price

    def __update_medicine_table(self, medicine: MedicineRecord, price: float,
                                now: datetime) -> MedicineRecord:
        """Update the catalog price and history using protected overrides."""

        history = medicine.price_history + (PricePoint(
            date=now.date().isoformat(), price=price), )
        updated = replace(medicine, price=price, price_history=history)
        self._save_medicine(updated)
        logger.info('Price of %s (id=%d) changed %.2f -> %.2f', medicine.name,
                    medicine.id, medicine.price, price)
        return updated

    def __update_inventory_table(self, pharmacy: PharmacyRecord,
                                 medicine: MedicineRecord, price: float | None,
                                 stock: int | None, now: datetime):
        """Update the inventory table using protected overrides."""

        current = self.get_inventory(pharmacy.id, medicine.id)
        if not current:
            current = InventoryRecord(pharmacy_id=pharmacy.id,
                                      medicine_id=medicine.id,
                                      stock=0,
                                      price=medicine.price,
                                      last_updated=now)
        self._save_inventory(
            replace(current,
                    stock=current.stock if stock is None else stock,
                    price=current.price if price is None else price,
                    last_updated=now))


class ManualTestingStorageStrategy(StorageStrategy):
    """Storage strategy that keeps the seeded catalog in memory."""

    def __init__(self):
        # one lock for every table; re-entrant so reads can run inside a
        # transaction held by the same thread
        self.lock = threading.RLock()
        self.medicine_table: dict[int, MedicineRecord] = {
            medicine.id: medicine
            for medicine in seed_data.seed_medicines()
        }
        self.pharmacy_table: dict[int, PharmacyRecord] = {
            pharmacy.id: pharmacy
            for pharmacy in seed_data.seed_pharmacies()
        }
        self.disease_trend_table = seed_data.seed_disease_trends()
        self.inventory_table: dict[tuple[int, int], InventoryRecord] = {
            (record.pharmacy_id, record.medicine_id): record
            for record in seed_data.seed_inventory(
                list(self.medicine_table.values()),
                list(self.pharmacy_table.values()), self._now())
        }
        self.alert_table: dict[int, AlertRecord] = {}
        self.next_alert_id = 1

    def start_transaction(self):
        """Take the table lock."""

        self.lock.acquire()

    def end_transaction(self):
        """Release the table lock."""

        self.lock.release()

    def list_medicines(self) -> list[MedicineRecord]:
        """Get a snapshot of the medicine table."""

        with self.lock:
            return list(self.medicine_table.values())

    def get_medicine(self, medicine_id: int) -> MedicineRecord | None:
        """Get a medicine by id (or None)."""

        with self.lock:
            return self.medicine_table.get(medicine_id, None)

    def list_pharmacies(self) -> list[PharmacyRecord]:
        """Get a snapshot of the pharmacy table."""

        return list(self.pharmacy_table.values())

    def get_pharmacy(self, pharmacy_id: int) -> PharmacyRecord | None:
        """Get a pharmacy by id (or None)."""

        return self.pharmacy_table.get(pharmacy_id, None)

    def get_pharmacy_by_name(self, name: str) -> PharmacyRecord | None:
        """Find (without any indexing) the pharmacy with this name."""

        for pharmacy in self.pharmacy_table.values():
            if pharmacy.name == name:
                return pharmacy
        return None

    def list_disease_trends(self) -> list[DiseaseTrendRecord]:
        """Get a snapshot of the disease trend table."""

        return list(self.disease_trend_table)

    def get_inventory(self, pharmacy_id: int,
                      medicine_id: int) -> InventoryRecord | None:
        """Get the inventory entry for a pharmacy/medicine combination."""

        with self.lock:
            return self.inventory_table.get((pharmacy_id, medicine_id), None)

    def inventory_for_pharmacy(self,
                               pharmacy_id: int) -> list[InventoryRecord]:
        """Scan the inventory table for one pharmacy's entries."""

        with self.lock:
            return [
                value for key, value in self.inventory_table.items()
                if key[0] == pharmacy_id
            ]

    def inventory_for_medicine(self,
                               medicine_id: int) -> list[InventoryRecord]:
        """Scan the inventory table for one medicine's entries."""

        with self.lock:
            return [
                value for key, value in self.inventory_table.items()
                if key[1] == medicine_id
            ]

    def add_alert(self, medicine: MedicineRecord, max_price: float,
                  email: str) -> AlertRecord:
        """Append a new alert to the in-memory alert table."""

        with self.lock:
            alert = AlertRecord(id=self.next_alert_id,
                                medicine_id=medicine.id,
                                medicine_name=medicine.name,
                                max_price=max_price,
                                email=email,
                                created_at=self._now())
            self.next_alert_id += 1
            self.alert_table[alert.id] = alert
            return alert

    def active_alerts_for(self, medicine_id: int) -> list[AlertRecord]:
        """Scan (without indexing) the alert table for a medicine."""

        with self.lock:
            return [
                alert for alert in self.alert_table.values()
                if alert.medicine_id == medicine_id and alert.active
            ]

    def debug_info(self):
        """Get the in-memory tables in printable form."""

        with self.lock:
            return {
                'medicines': list(self.medicine_table.values()),
                'inventory': list(self.inventory_table.values()),
                'alerts': list(self.alert_table.values())
            }

    def _save_medicine(self, medicine: MedicineRecord):
        """Replace the in-memory medicine table entry."""

        with self.lock:
            self.medicine_table[medicine.id] = medicine

    def _save_inventory(self, inventory_record: InventoryRecord):
        """Create or replace the in-memory inventory table entry."""

        with self.lock:
            self.inventory_table[inventory_record.pharmacy_id,
                                 inventory_record.medicine_id] = inventory_record


class UnitTestingStorageStrategy(ManualTestingStorageStrategy):
    """In-memory storage whose clock is pinned so timestamps are stable."""

    FIXED_NOW = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        """Always the same instant."""

        return self.FIXED_NOW


def get_storage_strategy(app: Flask | None) -> StorageStrategy:
    """
    Factory function to get a storage strategy based on the current environment.

    Args:
        app (Flask|None): the Flask app (None if unit testing)

    Returns:
        The new storage strategy instance.
    """

    if not app:
        return UnitTestingStorageStrategy()

    return ManualTestingStorageStrategy()
