import logging
from typing import Callable, List, Optional

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from app.config import settings
from app.results import StorageResult
from app.schemas import AccountRecord, MessageRecord

logger = logging.getLogger(__name__)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores FOREIGN KEY clauses unless enabled per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_db_engine(database_url: str, **kwargs) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    SQLite engines get check_same_thread=False (requests are served from
    FastAPI's threadpool) and enforce foreign keys on every connection.
    """
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    db_engine = create_engine(database_url, **kwargs)
    if is_sqlite:
        event.listen(db_engine, "connect", _enable_sqlite_foreign_keys)
    return db_engine


engine = create_db_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)

# Connection provider handed to the Storage Gateway
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for SQLAlchemy models
Base = declarative_base()


def init_db() -> None:
    """
    Initialize the database by creating all tables.
    Called during application startup.
    """
    logger.debug(f"Initializing database with URL: {engine.url.render_as_string(hide_password=True)}")
    try:
        # Import models to register them with Base.metadata
        from app.models import Account, Message

        logger.debug("Creating database tables...")
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def check_db_health() -> bool:
    """
    Check if the database is reachable and schema is applied.

    Returns:
        True if DB is healthy and both tables exist, False otherwise.
    """
    logger.debug("Checking database health...")
    try:
        with SessionLocal() as db:
            db.execute(text("SELECT 1"))
            logger.debug("Database connectivity OK")

        inspector = inspect(engine)
        for table in ("account", "message"):
            if not inspector.has_table(table):
                logger.error(f"Database schema not applied: '{table}' table not found")
                return False
        logger.debug("Database health check passed")
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {e}")
        return False


# =============================================================================
# Storage Gateway
# =============================================================================

class StorageGateway:
    """
    Maps account and message operations onto parameterized statements.

    Every operation opens its own session from the connection provider and
    releases it before returning, on success and on failure alike. Store
    errors never escape: they are rolled back, logged and reported as a
    failed (or, for constraint violations, conflict) StorageResult.
    """

    def __init__(self, session_factory: Callable[[], Session], logger: Optional[logging.Logger] = None):
        self._session_factory = session_factory
        self._logger = logger or logging.getLogger(__name__)

    def _execute(self, operation: str, work: Callable[[Session], StorageResult]) -> StorageResult:
        with self._session_factory() as db:
            try:
                return work(db)
            except IntegrityError as e:
                db.rollback()
                self._logger.warning(f"{operation} rejected by constraint: {e.orig}")
                return StorageResult.conflict(str(e.orig))
            except SQLAlchemyError as e:
                db.rollback()
                self._logger.error(f"{operation} failed: {e}")
                return StorageResult.failed(str(e))
            except OverflowError as e:
                # driver refuses integers outside the signed 64-bit range
                db.rollback()
                self._logger.error(f"{operation} failed: {e}")
                return StorageResult.failed(str(e))

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def insert_account(self, username: str, password: str) -> StorageResult[AccountRecord]:
        """
        Insert an account row and return it with its generated account_id.

        Returns:
            success(AccountRecord), conflict if the username is taken,
            failed on any other store error
        """
        from app.models import Account

        self._logger.info(f"Inserting account: username={username}")

        def work(db: Session) -> StorageResult[AccountRecord]:
            account = Account(username=username, password=password)
            db.add(account)
            db.commit()
            db.refresh(account)
            self._logger.debug(f"Generated account_id: {account.account_id}")
            return StorageResult.success(AccountRecord.model_validate(account))

        return self._execute("insert_account", work)

    def get_account_by_username(self, username: str) -> StorageResult[AccountRecord]:
        from app.models import Account

        self._logger.info(f"Looking up account by username: {username}")

        def work(db: Session) -> StorageResult[AccountRecord]:
            account = db.query(Account).filter(Account.username == username).first()
            if account is None:
                return StorageResult.not_found()
            return StorageResult.success(AccountRecord.model_validate(account))

        return self._execute("get_account_by_username", work)

    def account_exists_by_id(self, account_id: int) -> StorageResult[bool]:
        """Existence probe that only projects the key column."""
        from app.models import Account

        def work(db: Session) -> StorageResult[bool]:
            row = db.query(Account.account_id).filter(Account.account_id == account_id).first()
            return StorageResult.success(row is not None)

        return self._execute("account_exists_by_id", work)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    def get_all_messages(self) -> StorageResult[List[MessageRecord]]:
        """Full scan. No ORDER BY, so callers must not rely on row order."""
        from app.models import Message

        self._logger.info("Querying all messages")

        def work(db: Session) -> StorageResult[List[MessageRecord]]:
            rows = db.query(Message).all()
            self._logger.debug(f"Retrieved {len(rows)} messages")
            return StorageResult.success([MessageRecord.model_validate(row) for row in rows])

        return self._execute("get_all_messages", work)

    def get_message_by_id(self, message_id: int) -> StorageResult[MessageRecord]:
        from app.models import Message

        self._logger.info(f"Looking up message by ID: {message_id}")

        def work(db: Session) -> StorageResult[MessageRecord]:
            row = db.query(Message).filter(Message.message_id == message_id).first()
            if row is None:
                return StorageResult.not_found()
            return StorageResult.success(MessageRecord.model_validate(row))

        return self._execute("get_message_by_id", work)

    def get_messages_by_account_id(self, account_id: int) -> StorageResult[List[MessageRecord]]:
        """
        Retrieve every message posted by an account.

        An account without messages is a success carrying an empty list,
        never not_found.
        """
        from app.models import Message

        self._logger.info(f"Querying messages posted by account {account_id}")

        def work(db: Session) -> StorageResult[List[MessageRecord]]:
            rows = db.query(Message).filter(Message.posted_by == account_id).all()
            return StorageResult.success([MessageRecord.model_validate(row) for row in rows])

        return self._execute("get_messages_by_account_id", work)

    def insert_message(self, posted_by: int, message_text: str, time_posted_epoch: int) -> StorageResult[MessageRecord]:
        """
        Insert a message row and return it with its generated message_id.

        Returns:
            success(MessageRecord), conflict if posted_by violates the
            foreign key, failed on any other store error
        """
        from app.models import Message

        self._logger.info(f"Inserting message: posted_by={posted_by}, time_posted_epoch={time_posted_epoch}")
        self._logger.debug(f"Message text: {message_text}")

        def work(db: Session) -> StorageResult[MessageRecord]:
            message = Message(
                posted_by=posted_by,
                message_text=message_text,
                time_posted_epoch=time_posted_epoch,
            )
            db.add(message)
            db.commit()
            db.refresh(message)
            self._logger.debug(f"Generated message_id: {message.message_id}")
            return StorageResult.success(MessageRecord.model_validate(message))

        return self._execute("insert_message", work)

    def update_message(self, message_id: int, message_text: str) -> StorageResult[None]:
        """
        Overwrite message_text only. The row is not read beforehand;
        not_found means the UPDATE touched no row.
        """
        from app.models import Message

        self._logger.info(f"Updating message text: {message_id}")

        def work(db: Session) -> StorageResult[None]:
            updated = (
                db.query(Message)
                .filter(Message.message_id == message_id)
                .update({Message.message_text: message_text}, synchronize_session=False)
            )
            db.commit()
            if updated == 0:
                return StorageResult.not_found()
            return StorageResult.success()

        return self._execute("update_message", work)

    def delete_message_by_id(self, message_id: int) -> StorageResult[MessageRecord]:
        """
        Delete a message and return its prior content.

        The row is fetched first; when it does not exist no DELETE is issued.
        """
        from app.models import Message

        self._logger.info(f"Deleting message: {message_id}")

        def work(db: Session) -> StorageResult[MessageRecord]:
            row = db.query(Message).filter(Message.message_id == message_id).first()
            if row is None:
                self._logger.info(f"Message {message_id} not found, nothing to delete")
                return StorageResult.not_found()
            record = MessageRecord.model_validate(row)
            db.delete(row)
            db.commit()
            return StorageResult.success(record)

        return self._execute("delete_message_by_id", work)


def get_gateway() -> StorageGateway:
    """Dependency that builds a Storage Gateway over the application's connection provider."""
    return StorageGateway(SessionLocal)
