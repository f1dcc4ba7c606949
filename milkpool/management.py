"""
Management commands for setup and ledger maintenance
"""
import click
from flask.cli import with_appcontext

from .extensions import db
from .models import MilkPool
from .services.milk_pool import audit_pool, ensure_active_pool, get_active_pool, get_pool


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables and open the first active pool (local/dev only)"""
    try:
        print("🚀 Creating milk pool tables...")
        db.create_all()
        pool = ensure_active_pool()
        print(f"✅ Database ready. Active pool: {pool.name} (id={pool.id})")
    except Exception as e:
        print(f'❌ Error initializing database: {str(e)}')
        raise


@click.command('pool-status')
@with_appcontext
def pool_status_command():
    """Show the active pool's figures"""
    pool = get_active_pool(create=False)
    if pool is None:
        print("ℹ️  No active milk pool.")
        return

    print(f"🥛 {pool.name} (id={pool.id})")
    print(f"   Total milk:     {pool.total_milk_liters:.3f} L")
    print(f"   Remaining milk: {pool.remaining_milk_liters:.3f} L")
    print(f"   Used milk:      {pool.milk_used_liters:.3f} L")
    print(f"   Original avg:   fat {pool.original_avg_fat:.3f}% / snf {pool.original_avg_snf:.3f}%")
    print(f"   Current avg:    fat {pool.current_avg_fat:.3f}% / snf {pool.current_avg_snf:.3f}%")


@click.command('verify-pool')
@click.option('--pool-id', type=int, help='Audit a single pool instead of every pool')
@with_appcontext
def verify_pool_command(pool_id):
    """Check pool figures against their addition and usage history"""
    if pool_id is not None:
        pool = get_pool(pool_id)
        pools = [pool] if pool is not None else []
    else:
        pools = MilkPool.query.order_by(MilkPool.id).all()
    if not pools:
        print("ℹ️  No milk pools to verify.")
        return

    failed = 0
    for pool in pools:
        violations = audit_pool(pool)
        if violations:
            failed += 1
            print(f"❌ Pool {pool.id} ({pool.status}):")
            for violation in violations:
                print(f"   - {violation}")
        else:
            print(f"✅ Pool {pool.id} ({pool.status}) is consistent")

    if failed:
        print(f"❌ {failed} of {len(pools)} pools failed verification")
        raise SystemExit(1)
    print(f"✅ All {len(pools)} pools verified")


def register_commands(app):
    """Register CLI commands"""
    # Database initialization
    app.cli.add_command(init_db_command)

    # Ledger maintenance
    app.cli.add_command(pool_status_command)
    app.cli.add_command(verify_pool_command)
