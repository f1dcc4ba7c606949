from dataclasses import asdict
from datetime import date

from flask import Blueprint, current_app, jsonify, request

from ...extensions import limiter
from ...services.milk_pool import (
    add_collections,
    archive_and_reset,
    get_active_pool,
    get_book_details,
    list_available_collections,
    list_pool_books,
    list_recent_usage,
    preview_usage,
    use_milk,
)

milk_pool_bp = Blueprint('milk_pool', __name__, url_prefix='/api/milk-pool')

_STATUS_BY_KIND = {
    'validation': 400,
    'not_found': 404,
    'conflict': 409,
    'error': 500,
}


def _reset_rate_limit():
    return current_app.config.get('POOL_RESET_RATE_LIMIT', '10 per minute')


def _failure(message, kind='validation'):
    return jsonify({'success': False, 'error': message, 'error_kind': kind}), _STATUS_BY_KIND.get(kind, 400)


def _result_response(result, payload_builder):
    if not result.success:
        return _failure(result.error, result.error_kind)
    body = {'success': True}
    body.update(payload_builder(result.data))
    return jsonify(body)


def _optional_float(value, label):
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number")


def _optional_date(value, label):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"{label} must be a date (YYYY-MM-DD)")


@milk_pool_bp.route('/', methods=['GET'])
def pool_overview():
    """Active pool, available collections and recent usage for the pool screen."""
    pool = get_active_pool()
    return jsonify({
        'success': True,
        'pool': pool.to_dict(),
        'available_collections': [c.to_dict() for c in list_available_collections()],
        'recent_usage': [u.to_dict() for u in list_recent_usage(pool.id)],
    })


@milk_pool_bp.route('/collections/available', methods=['GET'])
def available_collections():
    return jsonify({
        'success': True,
        'collections': [c.to_dict() for c in list_available_collections()],
    })


@milk_pool_bp.route('/usage', methods=['GET'])
def recent_usage():
    pool = get_active_pool()
    limit = request.args.get('limit', type=int)
    return jsonify({
        'success': True,
        'pool_id': pool.id,
        'usage': [u.to_dict() for u in list_recent_usage(pool.id, limit=limit)],
    })


@milk_pool_bp.route('/add', methods=['POST'])
def add_to_pool():
    """Blend the selected collections into the active pool"""
    data = request.get_json(silent=True) or {}
    collection_ids = data.get('collection_ids') or []
    if not isinstance(collection_ids, list):
        return _failure("collection_ids must be a list")

    pool_id = data.get('pool_id') or get_active_pool().id
    result = add_collections(pool_id, collection_ids, added_by=data.get('user_id'))
    return _result_response(result, lambda outcome: {
        'added_liters': outcome.added_liters,
        'collections_count': outcome.collections_count,
        'new_avg_fat': outcome.new_avg_fat,
        'new_avg_snf': outcome.new_avg_snf,
    })


@milk_pool_bp.route('/use', methods=['POST'])
def use_from_pool():
    """Withdraw milk at a manual composition, optionally creating inventory"""
    data = request.get_json(silent=True) or {}
    inventory_items = data.get('inventory_items') or []
    if not isinstance(inventory_items, list):
        return _failure("inventory_items must be a list")

    pool_id = data.get('pool_id') or get_active_pool().id
    result = use_milk(
        pool_id,
        data.get('liters'),
        data.get('fat_percent'),
        data.get('snf_percent'),
        purpose=data.get('purpose'),
        inventory_draws=inventory_items,
        used_by=data.get('user_id'),
    )
    return _result_response(result, lambda outcome: {
        'usage_id': outcome.usage_id,
        'used_fat_units': outcome.used_fat_units,
        'used_snf_units': outcome.used_snf_units,
        'new_remaining_liters': outcome.new_remaining_liters,
        'new_avg_fat': outcome.new_avg_fat,
        'new_avg_snf': outcome.new_avg_snf,
        'inventory_item_ids': list(outcome.inventory_item_ids),
    })


@milk_pool_bp.route('/use/preview', methods=['GET'])
def preview_use():
    """Ceilings and projected averages for the use-milk form"""
    try:
        liters = _optional_float(request.args.get('liters'), 'liters')
        fat = _optional_float(request.args.get('fat_percent'), 'fat_percent') or 0.0
        snf = _optional_float(request.args.get('snf_percent'), 'snf_percent') or 0.0
    except ValueError as exc:
        return _failure(str(exc))
    if not liters or liters <= 0:
        return _failure("liters must be greater than zero")

    plan = preview_usage(get_active_pool(), liters, fat, snf)
    return jsonify({'success': True, 'preview': asdict(plan)})


@milk_pool_bp.route('/reset', methods=['POST'])
@limiter.limit(_reset_rate_limit)
def reset_pool():
    """Archive the active pool into a book and open a fresh one"""
    data = request.get_json(silent=True) or {}
    pool_id = data.get('pool_id')
    if not pool_id:
        return _failure("pool_id is required")

    result = archive_and_reset(pool_id, closed_by=data.get('user_id'), notes=data.get('notes'))
    return _result_response(result, lambda outcome: {
        'message': 'Pool reset successfully! All values set to zero.',
        'book': outcome.book.to_dict(),
        'new_pool_id': outcome.new_pool_id,
        'summary': outcome.summary(),
    })


@milk_pool_bp.route('/books', methods=['GET'])
def pool_books():
    try:
        books = list_pool_books(
            start_date=_optional_date(request.args.get('start_date'), 'start_date'),
            end_date=_optional_date(request.args.get('end_date'), 'end_date'),
            min_milk=_optional_float(request.args.get('min_milk'), 'min_milk'),
            max_milk=_optional_float(request.args.get('max_milk'), 'max_milk'),
            search=request.args.get('search'),
        )
    except ValueError as exc:
        return _failure(str(exc))
    return jsonify({'success': True, 'books': [book.to_dict() for book in books]})


@milk_pool_bp.route('/books/<int:book_id>', methods=['GET'])
def pool_book_details(book_id):
    details = get_book_details(book_id)
    if details is None:
        return _failure('Book not found', 'not_found')
    return jsonify({'success': True, 'book': details})
