from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.orm.exc import StaleDataError
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache, wraps
from typing import List
import logging

from core.change_feed import ChangeFeed
from core.exceptions import ImpostorGameException

logger = logging.getLogger(__name__)


DEFAULT_WORD_LIST = [
    "Pizza", "Beach", "Guitar", "Mountain", "Coffee", "Book", "Football", "Dog",
    "Rain", "Summer", "Moon", "Cinema", "Chocolate", "Bicycle", "Party",
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./impostor_game.db"
    log_level: str = "INFO"

    # Room creation bounds
    min_players: int = 3
    max_players_limit: int = 12
    max_impostors: int = 3
    min_rounds: int = 3
    max_rounds_limit: int = 10

    # Game rules
    min_players_to_start: int = 3
    max_name_length: int = 30
    max_clue_length: int = 100
    room_code_length: int = 6
    word_list: List[str] = DEFAULT_WORD_LIST
    rotate_word_each_round: bool = False

    # Browser origins allowed to call the API
    cors_origins: List[str] = ["*"]

    # Client-side identity persistence
    identity_store_path: str = "./.impostor_identity.json"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite needs check_same_thread=False because FastAPI runs sync endpoints
# in a thread pool that shares the connection pool.
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Every session made by SessionLocal publishes committed row changes here.
change_feed = ChangeFeed()
change_feed.bind(SessionLocal)


def get_db():
    """
    FastAPI dependency: provides a database Session

    yield makes sure the session is closed once the request finishes
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _find_session(args, kwargs):
    if args and isinstance(args[0], Session):
        return args[0]
    if 'db' in kwargs:
        return kwargs['db']
    # Bound manager methods: the session lives on the instance
    if args and isinstance(getattr(args[0], 'db', None), Session):
        return args[0].db
    return None


def transactional(func):
    """
    Transaction decorator: makes a database step atomic

    Usage:
        @transactional
        def some_business_logic(db: Session, ...):
            room = Room(...)
            db.add(room)
            # no manual commit, the decorator handles it

        class SomeManager:
            def __init__(self, db: Session):
                self.db = db

            @transactional
            def some_step(self, ...):
                ...

    If the function raises:
        - the session is rolled back
        - the exception is re-raised for the caller to handle

    Notes:
        - the session is the first argument, a `db` keyword, or `self.db`
        - never commit inside the function
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        db = _find_session(args, kwargs)

        if db is None:
            raise ValueError(
                f"@transactional requires a Session as first argument, 'db' keyword "
                f"or 'self.db', but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except (ImpostorGameException, IntegrityError, StaleDataError) as e:
            # Rule violations and lost races are expected, the caller decides
            logger.warning(f"Transaction rolled back in {func.__name__}: {e}")
            db.rollback()
            raise
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
