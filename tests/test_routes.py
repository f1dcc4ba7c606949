"""
JSON endpoints under /api/milk-pool.
"""
import pytest

from milkpool import create_app
from milkpool.extensions import db
from milkpool.models import PoolBook
from milkpool.services.milk_pool import get_active_pool


@pytest.fixture
def pooled(client, make_collection):
    """Active pool holding 100 L @ 4.0 / 8.5, blended through the API."""
    collection = make_collection(100, 4.0, 8.5)
    response = client.post('/api/milk-pool/add', json={'collection_ids': [collection.id]})
    assert response.status_code == 200, response.get_json()
    return get_active_pool()


class TestPoolOverview:

    def test_overview_opens_empty_pool(self, client, app_context):
        response = client.get('/api/milk-pool/')

        assert response.status_code == 200
        payload = response.get_json()
        assert payload['success'] is True
        assert payload['pool']['status'] == 'active'
        assert payload['pool']['remaining_milk_liters'] == 0.0
        assert payload['available_collections'] == []
        assert payload['recent_usage'] == []

    def test_available_collections(self, client, make_collection):
        collection = make_collection(42, 4.1, 8.6)

        payload = client.get('/api/milk-pool/collections/available').get_json()

        assert [c['id'] for c in payload['collections']] == [collection.id]
        assert payload['collections'][0]['supplier_name'] == 'Hillside Dairy'


class TestAddEndpoint:

    def test_add_reports_new_averages(self, client, make_collection):
        first = make_collection(100, 4.0, 8.5)
        second = make_collection(100, 5.0, 8.5)

        response = client.post('/api/milk-pool/add', json={'collection_ids': [first.id, second.id]})

        payload = response.get_json()
        assert response.status_code == 200
        assert payload['added_liters'] == pytest.approx(200.0)
        assert payload['new_avg_fat'] == pytest.approx(4.5)
        assert payload['collections_count'] == 2

    def test_empty_selection_is_bad_request(self, client, app_context):
        response = client.post('/api/milk-pool/add', json={'collection_ids': []})

        assert response.status_code == 400
        assert response.get_json()['error_kind'] == 'validation'

    def test_ids_must_be_a_list(self, client, app_context):
        response = client.post('/api/milk-pool/add', json={'collection_ids': 5})

        assert response.status_code == 400

    def test_unknown_collection_is_404(self, client, app_context):
        response = client.post('/api/milk-pool/add', json={'collection_ids': [777]})

        assert response.status_code == 404


class TestUseEndpoint:

    def test_use_with_inventory(self, client, pooled):
        response = client.post('/api/milk-pool/use', json={
            'liters': 30,
            'fat_percent': 5.0,
            'snf_percent': 8.0,
            'purpose': 'Khoa',
            'inventory_items': [{'product_id': 9, 'quantity': 7, 'unit': 'kg'}],
            'user_id': 2,
        })

        payload = response.get_json()
        assert response.status_code == 200, payload
        assert payload['used_fat_units'] == pytest.approx(150.0)
        assert payload['new_remaining_liters'] == pytest.approx(70.0)
        assert payload['new_avg_fat'] == pytest.approx(250.0 / 70.0)
        assert len(payload['inventory_item_ids']) == 1

    def test_overdraw_is_bad_request(self, client, pooled):
        response = client.post('/api/milk-pool/use', json={'liters': 150, 'fat_percent': 4, 'snf_percent': 8})

        assert response.status_code == 400
        assert 'Invalid quantity' in response.get_json()['error']

    def test_ceiling_is_bad_request(self, client, pooled):
        response = client.post('/api/milk-pool/use', json={'liters': 10, 'fat_percent': 45, 'snf_percent': 8})

        assert response.status_code == 400
        assert 'Fat % cannot exceed' in response.get_json()['error']

    def test_usage_listing(self, client, pooled):
        client.post('/api/milk-pool/use', json={'liters': 10, 'fat_percent': 4, 'snf_percent': 8.5})

        payload = client.get('/api/milk-pool/usage').get_json()

        assert payload['pool_id'] == pooled.id
        assert [u['used_liters'] for u in payload['usage']] == [10.0]

    def test_preview(self, client, pooled):
        response = client.get('/api/milk-pool/use/preview?liters=10&fat_percent=4')

        preview = response.get_json()['preview']
        assert response.status_code == 200
        assert preview['max_fat_percent'] == pytest.approx(40.0)
        assert preview['max_snf_percent'] == pytest.approx(85.0)
        assert preview['remaining_liters'] == pytest.approx(90.0)

    def test_preview_requires_liters(self, client, pooled):
        assert client.get('/api/milk-pool/use/preview').status_code == 400
        assert client.get('/api/milk-pool/use/preview?liters=x').status_code == 400


class TestResetAndBooks:

    def test_reset_returns_book_and_summary(self, client, pooled):
        client.post('/api/milk-pool/use', json={'liters': 30, 'fat_percent': 5.0, 'snf_percent': 8.0})

        response = client.post('/api/milk-pool/reset', json={'pool_id': pooled.id, 'notes': 'weekly close'})

        payload = response.get_json()
        assert response.status_code == 200, payload
        assert payload['message'] == 'Pool reset successfully! All values set to zero.'
        assert payload['book']['closing_total_liters'] == pytest.approx(70.0)
        assert payload['summary']['usage_count'] == 1
        assert payload['new_pool_id'] != pooled.id

        overview = client.get('/api/milk-pool/').get_json()
        assert overview['pool']['id'] == payload['new_pool_id']
        assert overview['pool']['remaining_milk_liters'] == 0.0

    def test_reset_requires_pool_id(self, client, app_context):
        assert client.post('/api/milk-pool/reset', json={}).status_code == 400

    def test_reset_of_archived_pool_rejected(self, client, pooled):
        pool_id = pooled.id
        assert client.post('/api/milk-pool/reset', json={'pool_id': pool_id}).status_code == 200

        response = client.post('/api/milk-pool/reset', json={'pool_id': pool_id})

        assert response.status_code == 400
        assert PoolBook.query.count() == 1

    def test_books_list_and_details(self, client, pooled):
        client.post('/api/milk-pool/use', json={'liters': 30, 'fat_percent': 5.0, 'snf_percent': 8.0})
        book_id = client.post('/api/milk-pool/reset', json={'pool_id': pooled.id}).get_json()['book']['book_id']

        listing = client.get('/api/milk-pool/books?min_milk=10&search=main').get_json()
        assert [b['book_id'] for b in listing['books']] == [book_id]

        details = client.get(f'/api/milk-pool/books/{book_id}').get_json()['book']
        assert details['total_milk_used'] == pytest.approx(30.0)
        assert len(details['usage_history']) == 1
        assert len(details['collections_history']) == 1

    def test_bad_book_filters(self, client, app_context):
        assert client.get('/api/milk-pool/books?start_date=yesterday').status_code == 400
        assert client.get('/api/milk-pool/books?min_milk=lots').status_code == 400

    def test_missing_book_is_404(self, client, app_context):
        response = client.get('/api/milk-pool/books/999')

        assert response.status_code == 404
        assert response.get_json()['error_kind'] == 'not_found'


def test_reset_is_rate_limited():
    limited = create_app({
        'TESTING': True,
        'DATABASE_URL': 'sqlite:///:memory:',
        'RATELIMIT_ENABLED': True,
        'RATELIMIT_STORAGE_URI': 'memory://',
        'POOL_RESET_RATE_LIMIT': '1 per minute',
        'CACHE_TYPE': 'SimpleCache',
        'CACHE_REDIS_URL': None,
    })
    with limited.app_context():
        db.create_all()
        client = limited.test_client()
        pool_id = client.get('/api/milk-pool/').get_json()['pool']['id']

        assert client.post('/api/milk-pool/reset', json={'pool_id': pool_id}).status_code == 200
        response = client.post('/api/milk-pool/reset', json={'pool_id': pool_id})

        assert response.status_code == 429
        assert response.get_json()['error_kind'] == 'rate_limited'
        db.drop_all()
