"""Tests for views.py."""

import json
import threading
import unittest
from unittest.mock import patch

from simple_websocket import ConnectionClosed

from views import create_app


class FakeSocket:
    """Stands in for a connected WebSocket client."""

    def __init__(self):
        self.frames = []

    def send(self, data):
        self.frames.append(json.loads(data))


class ClosingSocket(FakeSocket):
    """A client that hangs up on its first receive()."""

    mode = 'test'

    def __init__(self, broadcaster):
        super().__init__()
        self.broadcaster = broadcaster
        self.counts_while_open = []
        self.closed = False

    def receive(self):
        self.counts_while_open.append(self.broadcaster.subscriber_count)
        raise ConnectionClosed()

    def close(self, *args, **kwargs):
        self.closed = True


class ViewsTests(unittest.TestCase):
    """Tests for views.py"""

    def setUp(self):
        self.app, self.storage, self.cache, self.broadcaster = create_app(
            testing=True)
        self.app.testing = True
        self.client = self.app.test_client()

    def put_inventory(self, pharmacy_id, medicine_id, body):
        return self.client.put(
            f'/api/admin/inventory/{pharmacy_id}/medicine/{medicine_id}',
            json=body)

    def lock_held_elsewhere(self):
        """True when another thread cannot take the storage lock right now."""

        result = []

        def try_lock():
            acquired = self.storage.lock.acquire(blocking=False)
            if acquired:
                self.storage.lock.release()
            result.append(not acquired)

        thread = threading.Thread(target=try_lock)
        thread.start()
        thread.join()
        return result[0]

    def test_health(self):
        response = self.client.get('/api/health')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['status'], 'OK')
        self.assertIn('alerts', response.json['features'])

    def test_search_without_filters_returns_default_limit(self):
        response = self.client.get('/api/medicines/search')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['total'], 10)
        self.assertEqual(len(response.json['results']), 10)

    def test_search_text_matches_composition(self):
        response = self.client.get('/api/medicines/search?q=PARACETAMOL')

        names = [m['name'] for m in response.json['results']]
        self.assertEqual(names, ['Dolo 650', 'Crocin Advance'])
        self.assertEqual(response.json['query'], 'PARACETAMOL')

    def test_search_location_matches_pharmacy_name(self):
        response = self.client.get('/api/medicines/search?location=fortis')

        ids = [m['id'] for m in response.json['results']]
        self.assertEqual(ids, [1, 2, 4, 5, 7, 8, 9])

    def test_search_sort_price_low(self):
        response = self.client.get('/api/medicines/search?sort=price-low')

        prices = [m['price'] for m in response.json['results']]
        self.assertEqual(prices, sorted(prices))
        self.assertEqual(response.json['results'][0]['name'],
                         'Crocin Advance')

    def test_search_limit_caps_results(self):
        response = self.client.get('/api/medicines/search?limit=3')

        self.assertEqual(response.json['total'], 3)

    def test_search_rejects_non_numeric_price(self):
        response = self.client.get('/api/medicines/search?minPrice=cheap')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json, {'error': 'minPrice must be a number'})

    def test_search_rejects_unknown_sort(self):
        response = self.client.get('/api/medicines/search?sort=popularity')

        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.json)

    def test_category_all(self):
        response = self.client.get('/api/medicines/category/all')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['total'], 10)

    def test_category_filters(self):
        response = self.client.get('/api/medicines/category/respiratory')

        names = [m['name'] for m in response.json['medicines']]
        self.assertEqual(names, ['Asthalin Inhaler', 'Montair LC'])

    def test_medicine_details(self):
        response = self.client.get('/api/medicines/1')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['name'], 'Dolo 650')
        self.assertEqual(response.json['price_history'][0], {
            'date': '2023-10-01',
            'price': 42.0
        })

    def test_medicine_details_not_found(self):
        response = self.client.get('/api/medicines/999')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json, {'error': 'Medicine not found'})

    def test_unknown_route(self):
        response = self.client.get('/api/nothing-here')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json['error'], 'Route not found')
        self.assertEqual(response.json['requested_url'], '/api/nothing-here')

    def test_availability_uses_fallback_distance_without_coordinates(self):
        response = self.client.get('/api/medicines/2/availability')

        self.assertEqual(response.status_code, 200)
        rows = {row['pharmacy']: row for row in response.json['availability']}
        self.assertEqual(set(rows), {'Apollo Pharmacy', 'Fortis Healthcare'})
        self.assertEqual(rows['Apollo Pharmacy']['stock'], 'out-of-stock')
        self.assertEqual(rows['Fortis Healthcare']['stock'], 'in-stock')
        self.assertEqual(rows['Fortis Healthcare']['distance'], '2.5 km')
        self.assertEqual(rows['Fortis Healthcare']['deliveryTime'], '2 hours')

    def test_availability_measures_from_user(self):
        response = self.client.get(
            '/api/medicines/1/availability?userLat=12.9716&userLng=77.5946')

        rows = {row['pharmacy']: row for row in response.json['availability']}
        self.assertEqual(rows['Apollo Pharmacy']['distance'], '0.0 km')
        self.assertEqual(rows['Apollo Pharmacy']['deliveryTime'], '1 hour')
        self.assertEqual(rows['Apollo Pharmacy']['pharmacy_info']['id'], 1)

    def test_availability_rejects_bad_coordinates(self):
        response = self.client.get(
            '/api/medicines/1/availability?userLat=north&userLng=77.5')

        self.assertEqual(response.status_code, 400)

    def test_pharmacies_filter_by_location(self):
        response = self.client.get('/api/pharmacies?location=downtown')

        self.assertEqual(response.json['total'], 1)
        self.assertEqual(response.json['pharmacies'][0]['name'], 'MedPlus')

    def test_pharmacy_details_lists_medicines(self):
        response = self.client.get('/api/pharmacies/3')

        self.assertEqual(response.json['name'], 'Fortis Healthcare')
        self.assertEqual(response.json['total_medicines'], 7)
        self.assertEqual(response.json['coordinates'], {
            'lat': 12.975,
            'lng': 77.6
        })

    def test_pharmacy_details_not_found(self):
        response = self.client.get('/api/pharmacies/42')

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json, {'error': 'Pharmacy not found'})

    def test_disease_trends(self):
        response = self.client.get('/api/disease-trends')

        self.assertEqual(len(response.json['trends']), 5)

    def test_admin_inventory(self):
        response = self.client.get('/api/admin/inventory/2')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['total_items'], 7)
        item = response.json['inventory'][0]
        self.assertIn('current_stock', item)
        self.assertEqual(item['last_updated'], '2024-01-15T12:00:00+00:00')

    def test_create_alert(self):
        response = self.client.post('/api/alerts/price',
                                    json={
                                        'medicine_id': 1,
                                        'max_price': 40.0,
                                        'email': 'a@example.com'
                                    })

        self.assertEqual(response.status_code, 201)
        alert = response.json['alert']
        self.assertEqual(alert['medicine_id'], 1)
        self.assertEqual(alert['medicine_name'], 'Dolo 650')
        self.assertEqual(alert['max_price'], 40.0)
        self.assertTrue(alert['active'])
        self.assertEqual(alert['created_at'], '2024-01-15T12:00:00+00:00')

    def test_create_alert_accepts_numeric_string_id(self):
        response = self.client.post('/api/alerts/price',
                                    json={
                                        'medicine_id': '3',
                                        'max_price': 25,
                                        'email': 'a@example.com'
                                    })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json['alert']['medicine_id'], 3)

    def test_create_alert_rejects_missing_email(self):
        response = self.client.post('/api/alerts/price',
                                    json={
                                        'medicine_id': 1,
                                        'max_price': 40.0
                                    })

        self.assertEqual(response.status_code, 400)

    def test_create_alert_rejects_zero_price(self):
        response = self.client.post('/api/alerts/price',
                                    json={
                                        'medicine_id': 1,
                                        'max_price': 0,
                                        'email': 'a@example.com'
                                    })

        self.assertEqual(response.status_code, 400)

    def test_create_alert_rejects_string_price(self):
        response = self.client.post('/api/alerts/price',
                                    json={
                                        'medicine_id': 1,
                                        'max_price': '40',
                                        'email': 'a@example.com'
                                    })

        self.assertEqual(response.status_code, 400)

    def test_create_alert_unknown_medicine(self):
        response = self.client.post('/api/alerts/price',
                                    json={
                                        'medicine_id': 999,
                                        'max_price': 40.0,
                                        'email': 'a@example.com'
                                    })

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json, {'error': 'Medicine not found'})

    def test_create_alert_rejects_non_json_body(self):
        response = self.client.post('/api/alerts/price',
                                    data='medicine_id=1',
                                    content_type='text/plain')

        self.assertEqual(response.status_code, 400)

    def test_update_inventory_changes_catalog_price(self):
        response = self.put_inventory(1, 1, {'price': 50.0, 'stock': 12})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['medicine'], {
            'id': 1,
            'name': 'Dolo 650',
            'price': 50.0,
            'pharmacy': 'Apollo Pharmacy'
        })
        medicine = self.client.get('/api/medicines/1').json
        self.assertEqual(medicine['price'], 50.0)
        self.assertEqual(medicine['price_history'][-1], {
            'date': '2024-01-15',
            'price': 50.0
        })
        self.assertEqual(self.storage.get_inventory(1, 1).stock, 12)

    def test_update_inventory_stock_only_keeps_price(self):
        response = self.put_inventory(1, 1, {'stock': 0})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['medicine']['price'], 45.0)
        self.assertEqual(response.json['alerts_sent'], 0)

    def test_update_inventory_unknown_pharmacy(self):
        response = self.put_inventory(9, 1, {'price': 10.0})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json, {'error': 'Pharmacy not found'})

    def test_update_inventory_unknown_medicine(self):
        response = self.put_inventory(1, 999, {'price': 10.0})

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json, {'error': 'Medicine not found'})

    def test_update_inventory_medicine_not_at_pharmacy(self):
        response = self.put_inventory(1, 8, {'price': 10.0})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json,
                         {'error': 'Medicine not available at this pharmacy'})

    def test_update_inventory_rejects_negative_price(self):
        response = self.put_inventory(1, 1, {'price': -1.0})

        self.assertEqual(response.status_code, 400)

    def test_update_inventory_rejects_boolean_stock(self):
        response = self.put_inventory(1, 1, {'stock': True})

        self.assertEqual(response.status_code, 400)

    def test_update_inventory_rejects_empty_update(self):
        response = self.put_inventory(1, 1, {})

        self.assertEqual(response.status_code, 400)

    def test_price_drop_notifies_connected_clients_once(self):
        socket = FakeSocket()
        self.broadcaster.subscribe(socket)
        self.client.post('/api/alerts/price',
                         json={
                             'medicine_id': 1,
                             'max_price': 40.0,
                             'email': 'a@example.com'
                         })

        sent = [
            self.put_inventory(1, 1, {'price': price}).json['alerts_sent']
            for price in (50.0, 38.0, 35.0)
        ]

        self.assertEqual(sent, [0, 1, 0])
        self.assertEqual(len(socket.frames), 1)
        frame = socket.frames[0]
        self.assertEqual(frame['type'], 'price_alert')
        self.assertEqual(frame['medicine'], 'Dolo 650')
        self.assertEqual(frame['current_price'], 38.0)
        self.assertEqual(frame['target_price'], 40.0)

    def test_alert_reaches_every_connected_client(self):
        sockets = [FakeSocket(), FakeSocket()]
        for socket in sockets:
            self.broadcaster.subscribe(socket)
        self.client.post('/api/alerts/price',
                         json={
                             'medicine_id': 1,
                             'max_price': 40.0,
                             'email': 'a@example.com'
                         })

        self.put_inventory(1, 1, {'price': 39.0})

        self.assertEqual([len(s.frames) for s in sockets], [1, 1])

    def test_price_trends(self):
        response = self.client.get('/api/reports/price-trends/1')

        self.assertEqual(response.json['current_price'], 45.0)
        self.assertEqual(len(response.json['price_history']), 3)

    def test_popular_medicines(self):
        response = self.client.get('/api/reports/popular-medicines?limit=2')

        names = [m['name'] for m in response.json['medicines']]
        self.assertEqual(names, ['Crocin Advance', 'Pan 40'])

    def test_best_prices_sorted(self):
        self.put_inventory(2, 1, {'price': 41.0})

        response = self.client.get('/api/reports/best-prices/1')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['best_price']['pharmacy_name'],
                         'MedPlus')
        prices = [p['price'] for p in response.json['prices']]
        self.assertEqual(prices, sorted(prices))

    def test_best_prices_not_found(self):
        response = self.client.get('/api/reports/best-prices/999')

        self.assertEqual(response.status_code, 404)

    @patch('cache_strategy.InMemoryCacheStrategy.retrieve')
    def test_best_prices_cached(self, mock_cache_retrieve):
        mock_cache_retrieve.return_value = {
            'medicine_id': 1,
            'medicine_name': 'Dolo 650',
            'prices': [],
            'best_price': None
        }

        response = self.client.get('/api/reports/best-prices/1')

        self.assertEqual(response.json['prices'], [])
        args, _ = mock_cache_retrieve.call_args
        self.assertEqual(args, (1, ))

    @patch('cache_strategy.InMemoryCacheStrategy.invalidate')
    def test_update_inventory_invalidates_cache(self, mock_invalidate):
        self.put_inventory(1, 1, {'price': 44.0})

        args, _ = mock_invalidate.call_args
        self.assertEqual(args, (1, ))

    @patch('storage_strategy.UnitTestingStorageStrategy.list_medicines')
    def test_unexpected_error_is_generic(self, mock_list_medicines):
        mock_list_medicines.side_effect = RuntimeError('boom')

        with self.assertLogs('medifind.views', level='ERROR'):
            response = self.client.get('/api/medicines/search')

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json['error'], 'Something went wrong!')
        self.assertNotIn('boom', response.get_data(as_text=True))

    def test_search_rejects_nan_price(self):
        response = self.client.get('/api/medicines/search?minPrice=nan')

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json,
                         {'error': 'minPrice must be a finite number'})

    def test_create_alert_rejects_nan_and_infinite_price(self):
        for literal in ('NaN', 'Infinity', '-Infinity'):
            with self.subTest(max_price=literal):
                response = self.client.post(
                    '/api/alerts/price',
                    data=('{"medicine_id": 1, "max_price": %s, '
                          '"email": "a@example.com"}' % literal),
                    content_type='application/json')

                self.assertEqual(response.status_code, 400)

        self.assertEqual(self.storage.active_alerts_for(1), [])

    def test_update_inventory_rejects_nan_and_infinite_price(self):
        for literal in ('NaN', 'Infinity'):
            with self.subTest(price=literal):
                response = self.client.put(
                    '/api/admin/inventory/1/medicine/1',
                    data='{"price": %s}' % literal,
                    content_type='application/json')

                self.assertEqual(response.status_code, 400)

        self.assertEqual(self.storage.get_medicine(1).price, 45.0)

    @patch('storage_strategy.UnitTestingStorageStrategy.end_transaction')
    @patch('storage_strategy.UnitTestingStorageStrategy.start_transaction')
    def test_update_inventory_runs_in_one_transaction(self, mock_start,
                                                      mock_end):
        self.put_inventory(1, 1, {'price': 44.0})

        mock_start.assert_called_once_with()
        mock_end.assert_called_once_with()

    @patch('cache_strategy.InMemoryCacheStrategy.update')
    def test_best_prices_fills_cache_inside_transaction(self, mock_update):
        held = []
        mock_update.side_effect = lambda *args: held.append(
            self.lock_held_elsewhere())

        response = self.client.get('/api/reports/best-prices/1')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(held, [True])

    @patch('cache_strategy.InMemoryCacheStrategy.invalidate')
    def test_update_inventory_invalidates_inside_transaction(
            self, mock_invalidate):
        held = []
        mock_invalidate.side_effect = lambda *args: held.append(
            self.lock_held_elsewhere())

        self.put_inventory(1, 1, {'price': 44.0})

        self.assertEqual(held, [True])
        self.assertFalse(self.lock_held_elsewhere())

    def test_best_prices_reflects_price_update_after_caching(self):
        self.client.get('/api/reports/best-prices/1')
        self.put_inventory(3, 1, {'price': 30.0})

        response = self.client.get('/api/reports/best-prices/1')

        self.assertEqual(response.json['best_price']['price'], 30.0)

    def test_alerts_socket_is_websocket_route(self):
        rules = [r for r in self.app.url_map.iter_rules() if r.rule == '/ws']

        self.assertEqual(len(rules), 1)
        self.assertTrue(rules[0].websocket)

    @patch('flask_sock.Server')
    def test_alerts_socket_unsubscribes_on_close(self, mock_server):
        ws = ClosingSocket(self.broadcaster)
        mock_server.return_value = ws
        mock_server.accept.return_value = ws
        rule = next(r for r in self.app.url_map.iter_rules()
                    if r.rule == '/ws')

        with self.app.test_request_context('/ws'):
            self.app.view_functions[rule.endpoint]()

        self.assertEqual(ws.counts_while_open, [1])
        self.assertEqual(self.broadcaster.subscriber_count, 0)
        self.assertTrue(ws.closed)

    def test_debug_route_hidden_by_default(self):
        response = self.client.get('/api/debug')

        self.assertEqual(response.status_code, 404)

    @patch('settings.Settings.DEBUG', True)
    def test_debug_route_when_enabled(self):
        app, _, __, ___ = create_app(testing=True)

        response = app.test_client().get('/api/debug')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json['subscribers'], 0)


if __name__ == '__main__':
    unittest.main()
