"""
Module: sme_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factory ownership,
    and transactional scope utilities.  A Database object is the single
    point of database connection configuration; it is built explicitly
    (sme_config.bridges.build_database) and passed to whoever needs it.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/immutability.py.  MUST NOT import from services/, selectors/, domain/,
    or outer layers (create_tables imports models to populate metadata).

Invariants enforced:
    - No module-level engine: two Database instances never share state.
    - session_scope() is commit-or-rollback; a failed block leaves storage
      exactly as it was.
    - SQLAlchemy OperationalError / DBAPIError surface as StorageError.
    - SQLite connections wait up to busy_timeout_seconds for a write lock
      and enforce foreign keys.

Failure modes:
    - StorageError when the database cannot be reached or a statement fails
      at the driver level.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from sme_kernel.db.base import Base
from sme_kernel.exceptions import StorageError
from sme_kernel.logging_config import get_logger

logger = get_logger("db.engine")


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Owns one engine and its session factory.

    Contract:
        Built from a database URL.  Services receive sessions produced by
        session_scope() (or by session_factory for worker threads).

    Guarantees:
        - Sessions do not expire attributes on commit, so DTOs can be built
          after the scope exits.
        - Immutability listeners are registered on construction.

    Non-goals:
        - Connection-level multi-tenancy.
        - Schema migrations (create_tables is create-if-missing only).
    """

    def __init__(
        self,
        url: str,
        *,
        echo: bool = False,
        busy_timeout_seconds: float = 30.0,
        pool_size: int = 5,
        max_overflow: int = 10,
    ):
        self.url = url
        self.busy_timeout_seconds = busy_timeout_seconds
        self.engine: Engine = self._build_engine(
            url, echo, busy_timeout_seconds, pool_size, max_overflow
        )
        self.session_factory: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False
        )

        from sme_kernel.db.immutability import register_immutability_listeners

        register_immutability_listeners()

        logger.info(
            "engine_initialized",
            extra={"dialect": self.dialect, "echo": echo},
        )

    @staticmethod
    def _build_engine(
        url: str,
        echo: bool,
        busy_timeout_seconds: float,
        pool_size: int,
        max_overflow: int,
    ) -> Engine:
        if url.startswith("sqlite"):
            engine = create_engine(
                url,
                echo=echo,
                connect_args={
                    "timeout": busy_timeout_seconds,
                    "check_same_thread": False,
                },
            )
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
            return engine

        options = f"-c lock_timeout={int(busy_timeout_seconds * 1000)}"
        return create_engine(
            url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            isolation_level="READ COMMITTED",
            connect_args={"options": options},
        )

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def new_session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Postconditions: On normal exit, session is committed and closed.
            On exception, session is rolled back and closed.  Driver-level
            failures are re-raised as StorageError; kernel errors propagate
            unchanged.

        Usage:
            with database.session_scope() as session:
                service = PurchaseService(session)
                service.save(draft)
        """
        session = self.session_factory()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except IntegrityError:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        except DBAPIError as exc:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise StorageError("transaction", str(exc.orig or exc)) from exc
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()

    def create_tables(self) -> None:
        """
        Create every table defined by the kernel models (if missing).

        Postconditions: All tables and indexes exist.
        """
        import sme_kernel.models  # noqa: F401  (populates Base.metadata)

        Base.metadata.create_all(self.engine)
        logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})

    def drop_tables(self) -> None:
        """Drop all tables. Use with caution - primarily for testing."""
        import sme_kernel.models  # noqa: F401

        Base.metadata.drop_all(self.engine)

    def dispose(self) -> None:
        """Release all pooled connections."""
        self.engine.dispose()
