"""Database configuration and initialization."""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = scoped_session(sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False))


def _engine_options(database_uri: str, echo: bool) -> dict:
    """Pool options per backend (SQLite has no server-side pool)."""
    if database_uri.startswith('sqlite'):
        options = {'echo': echo, 'connect_args': {'check_same_thread': False}}
        # In-memory databases live inside one connection
        if database_uri in ('sqlite://', 'sqlite:///:memory:'):
            options['poolclass'] = StaticPool
        return options

    return {
        'echo': echo,
        'pool_pre_ping': True,  # Enable connection health checks
        'pool_size': 10,
        'max_overflow': 20,
    }


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores FK actions (RESTRICT / CASCADE / SET NULL) unless asked."""
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def init_db(app):
    """Initialize database connection."""
    global engine

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine = create_engine(
        database_uri,
        **_engine_options(database_uri, app.config.get('SQLALCHEMY_ECHO', False))
    )

    if engine.dialect.name == 'sqlite':
        event.listen(engine, 'connect', _enable_sqlite_foreign_keys)

    db_session.remove()
    db_session.configure(bind=engine)

    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_schema():
    """Create all tables known to the models package."""
    import app.models  # noqa: F401  (registers mappers on Base.metadata)
    Base.metadata.create_all(bind=engine)


def drop_schema():
    """Drop all tables (tests and `flask init-db --drop`)."""
    import app.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def translate_db_error(error, duplicate_message=None, reference_message=None):
    """
    Map a SQLAlchemy error raised by the driver onto the application taxonomy.

    IntegrityError is split by the constraint kind named in the driver message
    (PostgreSQL and SQLite both mention "unique"/"duplicate" or "foreign key").
    """
    from sqlalchemy.exc import IntegrityError, DBAPIError
    from app.exceptions import (
        DuplicateKeyError, ReferentialConflictError, ValidationFailedError, TransportFailureError
    )

    if isinstance(error, IntegrityError):
        detail = str(error.orig).lower()
        if 'foreign key' in detail:
            return ReferentialConflictError(reference_message or 'The record is referenced by other records')
        if 'unique' in detail or 'duplicate' in detail:
            return DuplicateKeyError(duplicate_message or 'A record with the same key already exists')
        return ValidationFailedError('The record violates a data constraint')
    if isinstance(error, DBAPIError):
        return TransportFailureError()
    return error


def commit_or_raise(session, duplicate_message=None, reference_message=None):
    """Commit; on failure roll back and raise the translated application error."""
    from sqlalchemy.exc import SQLAlchemyError

    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise translate_db_error(e, duplicate_message, reference_message) from e


def get_session():
    """Get database session."""
    return db_session


# Alias for easier imports
db = db_session
