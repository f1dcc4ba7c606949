import logging
import os
from logging.config import fileConfig

from flask import current_app
from sqlalchemy import create_engine, text

from alembic import context

import milkpool.models  # noqa: F401  # every ledger table on the metadata
from milkpool.config import _normalize_db_url

config = context.config
fileConfig(config.config_file_name)
logger = logging.getLogger('alembic.env')

# checked in order; the first one set wins over the app's own engine
_URL_OVERRIDES = ('ALEMBIC_DATABASE_URL', 'DATABASE_INTERNAL_URL', 'DATABASE_URL')

migrate_ext = current_app.extensions['migrate']
target_metadata = migrate_ext.db.metadata


def _engine():
    for key in _URL_OVERRIDES:
        url = _normalize_db_url(os.environ.get(key))
        if url:
            return create_engine(url)
    return migrate_ext.db.engine


def _drop_stale_batch_tables(connection):
    """Remove _alembic_tmp_* tables a crashed SQLite batch migration left behind."""
    stale = connection.execute(text(
        "SELECT name FROM sqlite_master WHERE type='table' AND name LIKE '_alembic_tmp_%'"
    )).scalars().all()
    for table_name in stale:
        logger.info('Dropping stale batch table %s', table_name)
        connection.execute(text(f'DROP TABLE IF EXISTS "{table_name}"'))
    if stale:
        connection.commit()


def _skip_empty_autogenerate(context_, revision, directives):
    if getattr(config.cmd_opts, 'autogenerate', False) and directives[0].upgrade_ops.is_empty():
        directives[:] = []
        logger.info('Milk pool schema unchanged; no revision written.')


def run_migrations_offline():
    context.configure(
        url=config.get_main_option('sqlalchemy.url'),
        target_metadata=target_metadata,
        literal_binds=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    conf_args = dict(migrate_ext.configure_args)
    conf_args['transaction_per_migration'] = True
    if conf_args.get('process_revision_directives') is None:
        conf_args['process_revision_directives'] = _skip_empty_autogenerate

    with _engine().connect() as connection:
        if connection.dialect.name == 'sqlite':
            _drop_stale_batch_tables(connection)
        context.configure(connection=connection, target_metadata=target_metadata, **conf_args)
        with context.begin_transaction():
            context.run_migrations()


config.set_main_option(
    'sqlalchemy.url',
    _engine().url.render_as_string(hide_password=False).replace('%', '%%'),
)

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
