"""
HTTP routing and behavior for the application,
separated from app.py for testing purposes.
"""

from dataclasses import asdict
from datetime import datetime, timezone
import logging
import math

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from flask_sock import Sock
from werkzeug.exceptions import HTTPException

from cache_strategy import get_cache_strategy, CacheStrategy
from errors import ApiError, NotFoundError, ValidationError
from geo import get_distance_strategy
from notifier import Broadcaster
from price_alerts import on_price_change, register_alert
from schema import MedicineRecord, PharmacyRecord
from search import (SearchQuery, medicines_in_category, parse_limit,
                    parse_user_location, search_medicines)
from settings import Settings
from storage_strategy import get_storage_strategy, StorageStrategy

logger = logging.getLogger('medifind.views')


class JSONProvider(DefaultJSONProvider):
    """Serializes datetimes as ISO-8601 rather than HTTP dates."""

    @staticmethod
    def default(o):
        if isinstance(o, datetime):
            return o.isoformat()
        return DefaultJSONProvider.default(o)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json_body() -> dict:
    """Get the request's JSON object body or fail validation."""

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _is_number(value) -> bool:
    """JSON number that is neither a boolean nor NaN/Infinity."""

    return (isinstance(value, (int, float)) and not isinstance(value, bool)
            and math.isfinite(value))


def _delivery_time(distance_km: float) -> str:
    """One hour per started 2 km, at least one hour."""

    hours = max(1, math.ceil(distance_km / 2))
    return f'{hours} hour' if hours == 1 else f'{hours} hours'


def create_app(
    testing: bool
) -> tuple[Flask, StorageStrategy, CacheStrategy, Broadcaster]:
    """Initiate and get the "global" objects for the Flask app."""

    app = Flask(__name__)
    app.json = JSONProvider(app)
    sock = Sock(app)

    storage_strategy: StorageStrategy = get_storage_strategy(
        None if testing else app)
    cache_strategy: CacheStrategy = get_cache_strategy(
        None if testing else app)
    distance_strategy = get_distance_strategy(None if testing else app)
    broadcaster = Broadcaster()

    def medicine_or_404(medicine_id: int) -> MedicineRecord:
        medicine = storage_strategy.get_medicine(medicine_id)
        if not medicine:
            raise NotFoundError('Medicine not found')
        return medicine

    def pharmacy_or_404(pharmacy_id: int) -> PharmacyRecord:
        pharmacy = storage_strategy.get_pharmacy(pharmacy_id)
        if not pharmacy:
            raise NotFoundError('Pharmacy not found')
        return pharmacy

    @app.errorhandler(ApiError)
    def handle_api_error(error: ApiError):
        return jsonify({'error': error.message}), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        if error.code == 404:
            return jsonify({
                'error': 'Route not found',
                'requested_url': request.path,
                'timestamp': _timestamp()
            }), 404
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        logger.exception('Unhandled error on %s %s', request.method,
                         request.path)
        return jsonify({
            'error': 'Something went wrong!',
            'timestamp': _timestamp()
        }), 500

    @app.route('/api/health', methods=['GET'])
    def health():
        """HTTP GET method to report that the service is up."""

        return jsonify({
            'status': 'OK',
            'timestamp': _timestamp(),
            'service': Settings.SERVICE_NAME,
            'features': Settings.FEATURES
        })

    @app.route('/api/medicines/search', methods=['GET'])
    def search():
        """
        HTTP GET method to search the catalog.

        Args:
            request.args: q, location, category, minPrice, maxPrice, sort,
                limit, userLat, userLng (all optional)

        Returns:
            The matching medicines plus the echoed query terms.
            On malformed numbers or an unknown sort, a 400 message.
        """

        query = SearchQuery.from_args(request.args)
        results = search_medicines(storage_strategy.list_medicines(), query,
                                   storage_strategy.list_pharmacies())

        return jsonify({
            'query': query.text,
            'category': query.category,
            'location': query.location,
            'results': results,
            'total': len(results),
            'timestamp': _timestamp()
        })

    @app.route('/api/medicines/category/<string:category>', methods=['GET'])
    def by_category(category):
        """HTTP GET method to list a category ('all' for everything)."""

        limit = parse_limit(request.args, Settings.CATEGORY_DEFAULT_LIMIT)
        results = medicines_in_category(storage_strategy.list_medicines(),
                                        category, limit)

        return jsonify({
            'category': category,
            'medicines': results,
            'total': len(results)
        })

    @app.route('/api/medicines/<int:medicine_id>', methods=['GET'])
    def medicine_details(medicine_id):
        """HTTP GET method for one medicine (404 if unknown)."""

        return jsonify(medicine_or_404(medicine_id))

    @app.route('/api/medicines/<int:medicine_id>/availability',
               methods=['GET'])
    def availability(medicine_id):
        """
        HTTP GET method to check stock of a medicine at every pharmacy that
        carries it.

        Args:
            medicine_id (int): the medicine
            request.args: userLat, userLng (optional, both or neither)

        Returns:
            Per-pharmacy stock, price, distance and delivery estimate.
            Distance is measured from the user if coordinates were given,
            otherwise it comes from the distance strategy's estimate.
        """

        medicine = medicine_or_404(medicine_id)
        user_location = parse_user_location(request.args)

        rows = []
        for name in medicine.pharmacies:
            pharmacy = storage_strategy.get_pharmacy_by_name(name)
            if not pharmacy:
                continue
            inventory = storage_strategy.get_inventory(pharmacy.id,
                                                       medicine.id)
            distance = distance_strategy.distance_km(user_location,
                                                     pharmacy.coordinates)
            rows.append({
                'pharmacy': name,
                'pharmacy_info': pharmacy,
                'stock': ('in-stock' if inventory and inventory.stock > 0
                          else 'out-of-stock'),
                'price': inventory.price if inventory else medicine.price,
                'distance': f'{distance:.1f} km',
                'deliveryTime': _delivery_time(distance)
            })

        return jsonify({
            'medicine_id': medicine.id,
            'medicine_name': medicine.name,
            'availability': rows,
            'last_updated': _timestamp()
        })

    @app.route('/api/pharmacies', methods=['GET'])
    def pharmacies():
        """HTTP GET method to list pharmacies, optionally by location."""

        results = storage_strategy.list_pharmacies()
        location = request.args.get('location')
        if location:
            needle = location.lower()
            results = [
                p for p in results
                if needle in p.location.lower() or needle in p.address.lower()
            ]

        return jsonify({'pharmacies': results, 'total': len(results)})

    @app.route('/api/pharmacies/<int:pharmacy_id>', methods=['GET'])
    def pharmacy_details(pharmacy_id):
        """HTTP GET method for a pharmacy and the medicines it carries."""

        pharmacy = pharmacy_or_404(pharmacy_id)
        stocked = [
            m for m in storage_strategy.list_medicines()
            if pharmacy.name in m.pharmacies
        ]

        return jsonify({
            **asdict(pharmacy), 'medicines': stocked,
            'total_medicines': len(stocked)
        })

    @app.route('/api/disease-trends', methods=['GET'])
    def disease_trends():
        """HTTP GET method for the disease trend table."""

        return jsonify({
            'trends': storage_strategy.list_disease_trends(),
            'last_updated': _timestamp()
        })

    @app.route('/api/admin/inventory/<int:pharmacy_id>', methods=['GET'])
    def inventory(pharmacy_id):
        """HTTP GET method for a pharmacy's stock levels and prices."""

        pharmacy = pharmacy_or_404(pharmacy_id)

        items = []
        for record in storage_strategy.inventory_for_pharmacy(pharmacy.id):
            medicine = storage_strategy.get_medicine(record.medicine_id)
            if not medicine:
                continue
            items.append({
                **asdict(medicine), 'pharmacy_price': record.price,
                'current_stock': record.stock,
                'last_updated': record.last_updated
            })

        return jsonify({
            'pharmacy': pharmacy,
            'inventory': items,
            'total_items': len(items)
        })

    @app.route('/api/admin/inventory/<int:pharmacy_id>/medicine/'
               '<int:medicine_id>',
               methods=['PUT'])
    def update_inventory(pharmacy_id, medicine_id):
        """
        HTTP PUT method to change a medicine's price and/or stock at a
        pharmacy.

        A price change becomes the catalog price and fires any price alerts
        it crosses.

        Args:
            request.json (dict): price (number >= 0) and/or stock
                (integer >= 0)

        Returns:
            The medicine's new state. 404 for an unknown pharmacy or
            medicine, 400 for bad fields or a medicine the pharmacy does not
            carry.
        """

        data = _json_body()
        price = data.get('price')
        stock = data.get('stock')

        if price is not None and (not _is_number(price) or price < 0):
            raise ValidationError('Price must be a non-negative number')
        if stock is not None and (not isinstance(stock, int)
                                  or isinstance(stock, bool) or stock < 0):
            raise ValidationError('Stock must be a non-negative integer')
        if price is None and stock is None:
            raise ValidationError('Provide price and/or stock to update')

        # invalidate under the same transaction that best_prices fills the
        # cache in, so a stale report cannot be written back afterwards
        with storage_strategy.transaction():
            medicine, pharmacy, old_price = storage_strategy.update_inventory(
                pharmacy_id,
                medicine_id,
                price=None if price is None else float(price),
                stock=stock)
            cache_strategy.invalidate(medicine.id)

        sent = []
        if old_price is not None:
            sent = on_price_change(storage_strategy, broadcaster, medicine,
                                   old_price, medicine.price)

        return jsonify({
            'success': True,
            'message': 'Inventory updated successfully',
            'medicine': {
                'id': medicine.id,
                'name': medicine.name,
                'price': medicine.price,
                'pharmacy': pharmacy.name
            },
            'alerts_sent': len(sent)
        })

    @app.route('/api/alerts/price', methods=['POST'])
    def create_price_alert():
        """
        HTTP POST method to register a price-drop alert.

        Args:
            request.json (dict): medicine_id, max_price, email

        Returns:
            tuple(alert, 201). 400 on missing/invalid fields, 404 for an
            unknown medicine.
        """

        data = _json_body()
        medicine_id = data.get('medicine_id')
        max_price = data.get('max_price')
        email = data.get('email')

        if medicine_id in (None, '') or max_price in (None, '') or not email:
            raise ValidationError(
                'Medicine ID, max price, and email are required')
        if isinstance(medicine_id, str) and medicine_id.strip().isdigit():
            medicine_id = int(medicine_id)
        if not isinstance(medicine_id, int) or isinstance(medicine_id, bool):
            raise ValidationError('Medicine ID must be an integer')

        alert = register_alert(storage_strategy, medicine_id, max_price,
                               email)

        return jsonify({
            'success': True,
            'alert': alert,
            'message': 'Price alert created successfully'
        }), 201

    @app.route('/api/reports/price-trends/<int:medicine_id>',
               methods=['GET'])
    def price_trends(medicine_id):
        """HTTP GET method for a medicine's price history."""

        medicine = medicine_or_404(medicine_id)

        return jsonify({
            'medicine_id': medicine.id,
            'medicine_name': medicine.name,
            'price_history': medicine.price_history,
            'current_price': medicine.price
        })

    @app.route('/api/reports/popular-medicines', methods=['GET'])
    def popular_medicines():
        """HTTP GET method ranking medicines by review count."""

        limit = parse_limit(request.args, Settings.POPULAR_DEFAULT_LIMIT)
        ranked = sorted(storage_strategy.list_medicines(),
                        key=lambda m: m.reviews,
                        reverse=True)[:limit]

        return jsonify({
            'report_type': 'popular_medicines',
            'medicines': [{
                'id': m.id,
                'name': m.name,
                'reviews': m.reviews,
                'rating': m.rating,
                'category': m.category[0] if m.category else None,
                'price': m.price
            } for m in ranked],
            'generated_at': _timestamp()
        })

    @app.route('/api/reports/best-prices/<int:medicine_id>', methods=['GET'])
    def best_prices(medicine_id):
        """
        HTTP GET method comparing a medicine's price across pharmacies.

        Served from cache_strategy when possible; inventory updates
        invalidate the entry.
        """

        with storage_strategy.transaction():
            report = cache_strategy.retrieve(medicine_id)
            if not report:
                medicine = medicine_or_404(medicine_id)
                prices = []
                for record in storage_strategy.inventory_for_medicine(
                        medicine.id):
                    pharmacy = storage_strategy.get_pharmacy(
                        record.pharmacy_id)
                    prices.append({
                        'pharmacy_id': record.pharmacy_id,
                        'pharmacy_name': pharmacy.name if pharmacy else None,
                        'price': round(record.price, 2),
                        'in_stock': record.stock > 0
                    })
                prices.sort(key=lambda p: p['price'])
                report = {
                    'medicine_id': medicine.id,
                    'medicine_name': medicine.name,
                    'prices': prices,
                    'best_price': prices[0] if prices else None
                }
                cache_strategy.update(medicine_id, report)

        return jsonify({**report, 'generated_at': _timestamp()})

    if Settings.DEBUG:

        @app.route('/api/debug', methods=['GET'])
        def debug():
            """
            HTTP GET method to get debug information.

            Only registered when MEDIFIND_DEBUG is set.
            """

            return jsonify({
                'storage': storage_strategy.debug_info(),
                'cache': cache_strategy.debug_info(),
                'subscribers': broadcaster.subscriber_count
            })

    @sock.route('/ws')
    def alerts_socket(ws):
        """
        WebSocket for real-time price alerts.

        Every connected client gets every alert; nothing is replayed on
        reconnect.
        """

        broadcaster.serve(ws)

    return app, storage_strategy, cache_strategy, broadcaster
