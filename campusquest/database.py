# campusquest/database.py
from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import DBAPIError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from campusquest.core.config import settings

# Failures that mean the store did not answer; safe to retry
STORE_ERRORS = (DBAPIError, PoolTimeoutError)

# Session.info key holding the caller's JWT claims as a JSON string
CALLER_CLAIMS_KEY = "caller_claims"


def _engine_kwargs() -> dict:
    if settings.is_sqlite():
        kwargs = {"connect_args": {"check_same_thread": False}}
        if settings.DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
            # One shared in-memory database for every session
            kwargs["poolclass"] = StaticPool
        return kwargs
    timeout_ms = int(settings.STORE_TIMEOUT_SECONDS * 1000)
    return {
        "pool_pre_ping": True,
        "pool_timeout": settings.STORE_TIMEOUT_SECONDS,
        "connect_args": {
            "connect_timeout": int(settings.STORE_TIMEOUT_SECONDS),
            # A hung statement fails with OperationalError instead of blocking
            "options": f"-c statement_timeout={timeout_ms}",
        },
    }


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs())
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


@event.listens_for(SessionLocal, "after_begin")
def bind_caller(session, transaction, connection):
    """Run every Postgres transaction as the caller, so row-level security sees them."""
    claims = session.info.get(CALLER_CLAIMS_KEY)
    if claims is None or connection.dialect.name != "postgresql":
        return
    connection.execute(text("SELECT set_config('request.jwt.claims', :claims, true)"), {"claims": claims})
    if settings.STORE_CALLER_ROLE:
        role = connection.dialect.identifier_preparer.quote(settings.STORE_CALLER_ROLE)
        connection.execute(text(f"SET LOCAL ROLE {role}"))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
