"""Price alert registration and downward-crossing detection."""

from datetime import datetime, timezone
import logging
import math

from errors import NotFoundError, ValidationError
from notifier import Broadcaster
from schema import AlertRecord, MedicineRecord, PriceAlertMessage
from settings import Settings
from storage_strategy import StorageStrategy

logger = logging.getLogger('medifind.alerts')


def register_alert(storage: StorageStrategy, medicine_id: int,
                   target_price: float, contact: str) -> AlertRecord:
    """
    Register an alert that fires when a medicine's price drops to or below
    target_price.

    Raises:
        ValidationError: target_price is not a positive number or contact
            is empty
        NotFoundError: no medicine has medicine_id
    """

    if (isinstance(target_price, bool)
            or not isinstance(target_price, (int, float))
            or not math.isfinite(target_price) or target_price <= 0):
        raise ValidationError('max_price must be a positive number')
    if not isinstance(contact, str) or not contact.strip():
        raise ValidationError('email is required')

    medicine = storage.get_medicine(medicine_id)
    if not medicine:
        raise NotFoundError('Medicine not found')

    alert = storage.add_alert(medicine, float(target_price), contact.strip())
    logger.info('Registered price alert %d: %s at or below %.2f for %s',
                alert.id, medicine.name, alert.max_price, alert.email)
    return alert


def crossed(alert: AlertRecord, old_price: float, new_price: float) -> bool:
    """True when the price moved from above the target to at or below it."""

    return old_price > alert.max_price >= new_price


def build_message(medicine: MedicineRecord, alert: AlertRecord, price: float,
                  now: datetime) -> PriceAlertMessage:
    """Build the notification for an alert that fired at price."""

    symbol = Settings.CURRENCY_SYMBOL
    return PriceAlertMessage(
        message=(f'Price alert: {medicine.name} is now {symbol}'
                 f'{price:.2f}, below your target of {symbol}'
                 f'{alert.max_price:.2f}'),
        medicine=medicine.name,
        current_price=price,
        target_price=alert.max_price,
        timestamp=now.isoformat())


def on_price_change(storage: StorageStrategy,
                    broadcaster: Broadcaster,
                    medicine: MedicineRecord,
                    old_price: float,
                    new_price: float,
                    now: datetime | None = None) -> list[PriceAlertMessage]:
    """
    Fire every active alert on medicine whose target the price just crossed.

    Each message goes to all connected subscribers, not only the one who
    registered the alert; alerts are not bound to a session.

    Args:
        medicine (MedicineRecord): the medicine after the update
        old_price (float): catalog price before the update
        new_price (float): catalog price after the update
        now (datetime|None): timestamp for the messages (default: now)

    Returns:
        The messages that were broadcast.
    """

    now = now or datetime.now(timezone.utc)
    sent = []
    for alert in storage.active_alerts_for(medicine.id):
        if not crossed(alert, old_price, new_price):
            continue
        message = build_message(medicine, alert, new_price, now)
        delivered = broadcaster.broadcast(message)
        logger.info('Price alert %d for %s sent to %d client(s): %s',
                    alert.id, alert.email, delivered, message.message)
        sent.append(message)
    return sent
