import logging
from collections import namedtuple
from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, create_engine, event, func, inspect, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from clinic_api.core import config


logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> dict:
    if database_url.startswith('sqlite'):
        return {'connect_args': {'timeout': config.DB_TIMEOUT_SECONDS, 'check_same_thread': False}}

    options = {'pool_pre_ping': True, 'pool_timeout': config.DB_TIMEOUT_SECONDS}
    if database_url.startswith('postgresql'):
        options['connect_args'] = {
            'connect_timeout': config.DB_TIMEOUT_SECONDS,
            'options': f'-c statement_timeout={config.DB_TIMEOUT_SECONDS * 1000}',
        }
    return options


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def build_engine(database_url: str, **overrides) -> Engine:
    options = _engine_options(database_url)
    options.update(overrides)
    new_engine = create_engine(database_url, echo=config.DB_ECHO, **options)
    if new_engine.dialect.name == 'sqlite':
        event.listen(new_engine, 'connect', _enable_sqlite_foreign_keys)
    return new_engine


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()


# Optional columns are added with raw DDL so that tables created by older
# deployments pick them up without touching existing rows.
OptionalColumn = namedtuple('OptionalColumn', ['name', 'type', 'default'])
TableSpec = namedtuple('TableSpec', ['name', 'optional_columns'])
SchemaMigration = namedtuple('SchemaMigration', ['version', 'description', 'apply'])

ACCOUNT_FIRST_LOGIN_COLUMNS = (
    OptionalColumn('is_first_login', 'BOOLEAN', 'TRUE'),
)

PATIENT_SCHEDULING_COLUMNS = (
    OptionalColumn('appointment_date', 'DATE', None),
    OptionalColumn('appointment_time', 'TIME', None),
    OptionalColumn('doctor_id', 'TEXT REFERENCES admin(doctor_id) ON DELETE SET NULL', None),
    OptionalColumn('is_active', 'BOOLEAN', 'FALSE'),
)

PATIENT_CLINICAL_COLUMNS = tuple(
    OptionalColumn(name, 'TEXT', None)
    for name in (
        'initial_complaints',
        'medical_history',
        'family_history',
        'social_history',
        'on_medications',
        'vitals',
        'allergies',
        'surgeries',
        'location',
        'professional',
    )
)

ACCOUNT_TABLE = TableSpec('admin', ACCOUNT_FIRST_LOGIN_COLUMNS)
PATIENT_TABLE = TableSpec('patient', PATIENT_SCHEDULING_COLUMNS + PATIENT_CLINICAL_COLUMNS)

migration_metadata = MetaData()

schema_migrations = Table(
    'schema_migrations',
    migration_metadata,
    Column('version', Integer, primary_key=True, autoincrement=False),
    Column('description', String, nullable=False),
    Column('applied_at', DateTime(timezone=True), nullable=False),
)


def _register_models() -> None:
    # Populates Base.metadata with the declarative tables.
    from clinic_api.models import account, patient  # noqa: F401


def get_column_names(bind: Engine, table_name: str) -> set[str]:
    return {column['name'] for column in inspect(bind).get_columns(table_name)}


def column_definition(column: OptionalColumn) -> str:
    definition = f'{column.name} {column.type}'
    if column.default is not None:
        definition += f' DEFAULT {column.default}'
    return definition


def add_missing_columns(bind: Engine, table_spec: TableSpec, existing_columns: set[str]) -> list[str]:
    """Add every optional column absent from ``existing_columns``.

    ``existing_columns`` may be stale: when another process adds the same
    column first, the failed ALTER is re-checked against the live schema and
    treated as success.
    """
    added_columns: list[str] = []

    for column in table_spec.optional_columns:
        if column.name in existing_columns:
            continue

        statement = f'ALTER TABLE {table_spec.name} ADD COLUMN {column_definition(column)}'
        try:
            with bind.begin() as connection:
                connection.execute(text(statement))
        except SQLAlchemyError:
            if column.name not in get_column_names(bind, table_spec.name):
                raise
            logger.info('Column %s.%s already added by a concurrent writer', table_spec.name, column.name)
            continue

        added_columns.append(column.name)

    return added_columns


def ensure_schema(table_spec: TableSpec, bind: Engine | None = None) -> list[str]:
    """Create ``table_spec`` if missing, then add its missing optional columns.

    Returns the names of the columns this call added.
    """
    bind = bind if bind is not None else engine
    _register_models()
    table = Base.metadata.tables[table_spec.name]

    if not inspect(bind).has_table(table_spec.name):
        try:
            table.create(bind=bind, checkfirst=True)
        except SQLAlchemyError:
            if not inspect(bind).has_table(table_spec.name):
                raise
            logger.info('Table %s already created by a concurrent writer', table_spec.name)

    existing_columns = get_column_names(bind, table_spec.name)
    return add_missing_columns(bind, table_spec, existing_columns)


def _create_patient_indexes(bind: Engine) -> None:
    with bind.begin() as connection:
        connection.execute(
            text(
                'CREATE INDEX IF NOT EXISTS idx_patient_doctor_schedule '
                'ON patient(doctor_id, appointment_date, appointment_time)'
            )
        )
        connection.execute(
            text('CREATE INDEX IF NOT EXISTS idx_patient_schedule ON patient(appointment_date, appointment_time)')
        )


MIGRATIONS = [
    SchemaMigration(1, 'create admin table', lambda bind: ensure_schema(TableSpec('admin', ()), bind)),
    SchemaMigration(2, 'create patient table', lambda bind: ensure_schema(TableSpec('patient', ()), bind)),
    SchemaMigration(
        3,
        'add patient scheduling columns',
        lambda bind: ensure_schema(TableSpec('patient', PATIENT_SCHEDULING_COLUMNS), bind),
    ),
    SchemaMigration(
        4,
        'add patient clinical columns',
        lambda bind: ensure_schema(TableSpec('patient', PATIENT_CLINICAL_COLUMNS), bind),
    ),
    SchemaMigration(5, 'add admin first login flag', lambda bind: ensure_schema(ACCOUNT_TABLE, bind)),
    SchemaMigration(6, 'add patient schedule indexes', _create_patient_indexes),
]


def get_schema_version(bind: Engine | None = None) -> int:
    bind = bind if bind is not None else engine

    if not inspect(bind).has_table(schema_migrations.name):
        return 0

    with bind.connect() as connection:
        version = connection.execute(select(func.max(schema_migrations.c.version))).scalar()
    return version or 0


def apply_migrations(bind: Engine | None = None) -> int:
    """Apply pending migrations in order and return the resulting version."""
    bind = bind if bind is not None else engine

    try:
        schema_migrations.create(bind=bind, checkfirst=True)
    except SQLAlchemyError:
        if not inspect(bind).has_table(schema_migrations.name):
            raise

    current_version = get_schema_version(bind)

    for migration in MIGRATIONS:
        if migration.version <= current_version:
            continue

        migration.apply(bind)

        try:
            with bind.begin() as connection:
                connection.execute(
                    schema_migrations.insert().values(
                        version=migration.version,
                        description=migration.description,
                        applied_at=datetime.now(timezone.utc),
                    )
                )
        except IntegrityError:
            logger.info('Schema migration %s already recorded by a concurrent writer', migration.version)
        else:
            logger.info('Applied schema migration %s: %s', migration.version, migration.description)

        current_version = migration.version

    return current_version


_schema_lock = Lock()
_schema_ready = False


def prepare_database() -> None:
    global _schema_ready

    if _schema_ready:
        return

    with _schema_lock:
        if _schema_ready:
            return

        apply_migrations()
        _schema_ready = True
