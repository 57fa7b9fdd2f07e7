"""
Filtering and sorting of the medicine catalog.

Everything here is a pure function of the records it is handed: callers
take a snapshot from the storage strategy and pass it in.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
import math

from errors import ValidationError
from geo import haversine_km
from schema import Coordinates, MedicineRecord, PharmacyRecord
from settings import Settings

SORT_KEYS = ('name', 'price-low', 'price-high', 'rating', 'distance')


def _optional_float(args: Mapping, name: str) -> float | None:
    raw = args.get(name)
    if raw is None or str(raw).strip() == '':
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f'{name} must be a number') from None
    if not math.isfinite(value):
        raise ValidationError(f'{name} must be a finite number')
    return value


def parse_limit(args: Mapping, default: int) -> int:
    """Read a non-negative ``limit`` argument, falling back to default."""

    raw = args.get('limit')
    if raw is None or str(raw).strip() == '':
        return default
    try:
        limit = int(raw)
    except (TypeError, ValueError):
        raise ValidationError('limit must be an integer') from None
    if limit < 0:
        raise ValidationError('limit cannot be negative')
    return limit


def parse_user_location(args: Mapping) -> Coordinates | None:
    """Read ``userLat``/``userLng``; None unless both are present."""

    lat = _optional_float(args, 'userLat')
    lng = _optional_float(args, 'userLng')
    if lat is None or lng is None:
        return None
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValidationError('userLat/userLng out of range')
    return Coordinates(lat=lat, lng=lng)


@dataclass(frozen=True)
class SearchQuery:
    text: str | None = None
    location: str | None = None
    category: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    sort: str | None = None
    limit: int = Settings.SEARCH_DEFAULT_LIMIT
    user_location: Coordinates | None = None

    @classmethod
    def from_args(cls, args: Mapping) -> 'SearchQuery':
        """
        Build a query from request arguments.

        Args:
            args (Mapping): q, location, category, minPrice, maxPrice, sort,
                limit, userLat, userLng (all optional)

        Raises:
            ValidationError: a numeric argument does not parse or the sort
                key is unknown
        """

        sort = args.get('sort') or None
        if sort is not None and sort not in SORT_KEYS:
            raise ValidationError(
                f'sort must be one of: {", ".join(SORT_KEYS)}')

        return cls(text=args.get('q') or None,
                   location=args.get('location') or None,
                   category=args.get('category') or None,
                   min_price=_optional_float(args, 'minPrice'),
                   max_price=_optional_float(args, 'maxPrice'),
                   sort=sort,
                   limit=parse_limit(args, Settings.SEARCH_DEFAULT_LIMIT),
                   user_location=parse_user_location(args))


def matches_text(medicine: MedicineRecord, text: str) -> bool:
    """Case-insensitive substring match over name/description/composition."""

    needle = text.lower()
    return (needle in medicine.name.lower()
            or needle in medicine.description.lower()
            or needle in medicine.composition.lower())


def in_category(medicine: MedicineRecord, category: str | None) -> bool:
    """True for any medicine when the category is empty or 'all'."""

    return not category or category == 'all' or category in medicine.category


def stocked_near(medicine: MedicineRecord, location: str) -> bool:
    """Location is matched against the names of stocking pharmacies."""

    needle = location.lower()
    return any(needle in name.lower() for name in medicine.pharmacies)


def _nearest_pharmacy_km(medicine: MedicineRecord, user: Coordinates,
                         pharmacies: Mapping[str, PharmacyRecord]) -> float:
    distances = [
        haversine_km(user, pharmacies[name].coordinates)
        for name in medicine.pharmacies if name in pharmacies
    ]
    return min(distances, default=float('inf'))


def sort_medicines(
    medicines: list[MedicineRecord],
    sort: str | None,
    user_location: Coordinates | None = None,
    pharmacies: Iterable[PharmacyRecord] = ()
) -> list[MedicineRecord]:
    """
    Sort medicines by the given key. Sorts are stable, so ties keep the
    order they came in.

    'distance' orders by the nearest stocking pharmacy and needs the user's
    location; without it the order is left unchanged.
    """

    if sort == 'name':
        return sorted(medicines, key=lambda m: m.name.lower())
    if sort == 'price-low':
        return sorted(medicines, key=lambda m: m.price)
    if sort == 'price-high':
        return sorted(medicines, key=lambda m: m.price, reverse=True)
    if sort == 'rating':
        return sorted(medicines, key=lambda m: m.rating, reverse=True)
    if sort == 'distance' and user_location is not None:
        by_name = {pharmacy.name: pharmacy for pharmacy in pharmacies}
        return sorted(medicines,
                      key=lambda m: _nearest_pharmacy_km(
                          m, user_location, by_name))
    return list(medicines)


def search_medicines(
        medicines: Iterable[MedicineRecord],
        query: SearchQuery,
        pharmacies: Iterable[PharmacyRecord] = ()) -> list[MedicineRecord]:
    """
    Run the filter pipeline: text, category, price range, location, then
    sort, then cap at query.limit.

    Args:
        medicines (Iterable[MedicineRecord]): catalog snapshot
        query (SearchQuery): parsed query
        pharmacies (Iterable[PharmacyRecord]): only needed for distance sort

    Returns:
        The matching medicines, at most query.limit of them.
    """

    results = list(medicines)

    if query.text:
        results = [m for m in results if matches_text(m, query.text)]
    if query.category:
        results = [m for m in results if in_category(m, query.category)]
    if query.min_price is not None:
        results = [m for m in results if m.price >= query.min_price]
    if query.max_price is not None:
        results = [m for m in results if m.price <= query.max_price]
    if query.location:
        results = [m for m in results if stocked_near(m, query.location)]

    results = sort_medicines(results, query.sort, query.user_location,
                             pharmacies)
    return results[:query.limit]


def medicines_in_category(medicines: Iterable[MedicineRecord], category: str,
                          limit: int) -> list[MedicineRecord]:
    """Category listing; 'all' gives the whole catalog up to limit."""

    return [m for m in medicines if in_category(m, category)][:limit]
