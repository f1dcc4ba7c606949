from sqlalchemy import text

from milkpool.extensions import db
from milkpool.models import MilkPool
from milkpool.services.milk_pool import use_milk


def test_init_db_opens_active_pool(runner, app_context):
    result = runner.invoke(args=['init-db'])

    assert result.exit_code == 0, result.output
    assert 'Active pool: Main Pool' in result.output
    assert MilkPool.query.filter_by(status='active').count() == 1


def test_pool_status_without_pool(runner, app_context):
    result = runner.invoke(args=['pool-status'])

    assert result.exit_code == 0
    assert 'No active milk pool' in result.output


def test_pool_status_reports_figures(runner, fill_pool):
    pool = fill_pool((100, 4.0, 8.5))
    use_milk(pool.id, 30, 5.0, 8.0)

    result = runner.invoke(args=['pool-status'])

    assert result.exit_code == 0
    assert 'Remaining milk: 70.000 L' in result.output
    assert 'fat 3.571%' in result.output


def test_verify_pool_passes_for_clean_ledger(runner, fill_pool):
    pool = fill_pool((100, 4.0, 8.5))
    use_milk(pool.id, 30, 5.0, 8.0)

    result = runner.invoke(args=['verify-pool'])

    assert result.exit_code == 0, result.output
    assert 'All 1 pools verified' in result.output


def test_verify_pool_fails_on_tampered_ledger(runner, fill_pool):
    pool = fill_pool((100, 4.0, 8.5))
    db.session.execute(
        text("UPDATE milk_pool SET total_milk_liters = 120 WHERE id = :id"),
        {'id': pool.id},
    )
    db.session.commit()

    result = runner.invoke(args=['verify-pool', '--pool-id', str(pool.id)])

    assert result.exit_code == 1
    assert 'liters added' in result.output
