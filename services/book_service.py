"""Catalog service: transaction boundaries, stock rules, listing cache.

Each public method is one unit of work. ``_transaction`` opens a session,
yields it to the repository calls and then either commits or rolls back;
rollback happens on domain errors, store errors and any other exception
raised inside the block, and the session is always closed.

The paginated listing is the only cached read. Single-book reads and all
writes go straight to the store.
"""

import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from typing import Callable, Iterator, List, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

import errors, models, schemas
from config import settings
from database import SessionLocal
from redis_client import BookCache, get_book_cache
from repositories.book_repository import BookRepository, SqlBookRepository

logger = logging.getLogger(__name__)

CACHE_PREFIX = "books:"

# SQLSTATE raised by PostgreSQL when statement_timeout fires
QUERY_CANCELED = "57014"


def cache_key(pagination: schemas.Pagination, search: str) -> str:
    return f"{CACHE_PREFIX}{pagination.page}:{pagination.page_size}:{search}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BookService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        repository: BookRepository,
        cache: Optional[BookCache] = None,
        cache_ttl: int = settings.CACHE_TTL_SECONDS,
        invalidate_on_write: bool = settings.CACHE_INVALIDATE_ON_WRITE,
        recommendation_limit: int = settings.RECOMMENDATION_LIMIT,
        default_timeout: Optional[float] = settings.REQUEST_TIMEOUT_SECONDS,
    ):
        self.session_factory = session_factory
        self.repository = repository
        self.cache = cache
        self.cache_ttl = cache_ttl
        self.invalidate_on_write = invalidate_on_write
        self.recommendation_limit = recommendation_limit
        self.default_timeout = default_timeout

    # -- transaction guard ---------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str, timeout: Optional[float] = None) -> Iterator[Session]:
        if timeout is None:
            timeout = self.default_timeout
        deadline = time.monotonic() + timeout if timeout is not None else None

        db = self.session_factory()
        try:
            # Sessions connect lazily; force it so an unreachable store fails here.
            db.connection()
            if timeout is not None:
                self._apply_statement_timeout(db, timeout)
        except SQLAlchemyError as exc:
            db.close()
            logger.error(f"[BookService] Failed to begin transaction - {operation}: {exc}")
            raise errors.ConnectivityError(f"Failed to connect to the database: {_reason(exc)}") from exc

        try:
            yield db
            if deadline is not None and time.monotonic() >= deadline:
                raise errors.OperationCancelledError(
                    f"{operation} was cancelled after exceeding its {timeout}s deadline"
                )
        except errors.CatalogError as exc:
            self._rollback(db, operation, exc)
            raise
        except SQLAlchemyError as exc:
            self._rollback(db, operation, exc)
            raise self._classify(operation, exc) from exc
        except BaseException as exc:
            self._rollback(db, operation, exc)
            raise
        else:
            try:
                db.commit()
            except SQLAlchemyError as exc:
                self._rollback(db, operation, exc)
                raise errors.ConnectivityError(f"Failed to commit transaction: {_reason(exc)}") from exc
        finally:
            db.close()

    def _apply_statement_timeout(self, db: Session, timeout: float) -> None:
        if db.get_bind().dialect.name != "postgresql":
            return
        # SET does not take bind parameters
        milliseconds = max(1, int(timeout * 1000))
        db.execute(text(f"SET LOCAL statement_timeout = {milliseconds}"))

    def _rollback(self, db: Session, operation: str, exc: BaseException) -> None:
        try:
            db.rollback()
        except SQLAlchemyError as rollback_exc:
            logger.error(f"[BookService] Rollback failed - {operation}: {rollback_exc}")

        if isinstance(exc, (errors.NotFoundError, errors.ValidationError)):
            logger.warning(f"[BookService] Transaction rolled back - {operation}: {exc.message}")
        elif isinstance(exc, Exception):
            logger.error(f"[BookService] Transaction rolled back due to error - {operation}: {exc!r}")
        else:
            logger.error(f"[BookService] Transaction rolled back due to fault - {operation}: {exc!r}")

    def _classify(self, operation: str, exc: SQLAlchemyError) -> errors.CatalogError:
        if isinstance(exc, OperationalError) and getattr(exc.orig, "pgcode", None) == QUERY_CANCELED:
            return errors.OperationCancelledError(f"{operation} was cancelled by the database: {_reason(exc)}")
        if isinstance(exc, (OperationalError, DisconnectionError, PoolTimeoutError)):
            return errors.ConnectivityError(f"Database unavailable during {operation}: {_reason(exc)}")
        return errors.RepositoryError(f"{operation} failed: {_reason(exc)}")

    # -- cache helpers -------------------------------------------------------

    def _read_cache(self, key: str) -> Optional[schemas.BookListResponse]:
        if self.cache is None:
            return None
        try:
            cached = self.cache.get(key)
        except errors.CacheError as exc:
            logger.warning(f"[BookService] Cache read failed, using database - GetAllBooks: {exc}")
            return None
        if cached is None:
            return None

        try:
            result = schemas.BookListResponse.model_validate_json(cached)
        except PydanticValidationError as exc:
            logger.warning(f"[BookService] Discarding unreadable cache entry {key}: {exc.error_count()} errors")
            return None

        logger.info(f"[BookService] Retrieved books from cache - GetAllBooks: cache_key={key}")
        return result

    def _write_cache(self, key: str, result: schemas.BookListResponse) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, result.model_dump_json(), self.cache_ttl)
        except errors.CacheError as exc:
            logger.error(f"[BookService] Failed to cache books - GetAllBooks: {exc}")
            return
        logger.info(f"[BookService] Cached books successfully - GetAllBooks: cache_key={key}")

    def _invalidate_listing(self, operation: str) -> None:
        if self.cache is None or not self.invalidate_on_write:
            return
        try:
            removed = self.cache.delete_prefix(CACHE_PREFIX)
        except errors.CacheError as exc:
            logger.warning(f"[BookService] Failed to invalidate listing cache - {operation}: {exc}")
            return
        logger.debug(f"[BookService] Invalidated {removed} listing cache entries - {operation}")

    # -- operations ----------------------------------------------------------

    def create_book(self, request: schemas.BookRequest, timeout: Optional[float] = None) -> None:
        now = _utcnow()
        book = models.Book(
            author_id=request.author_id,
            title=request.title,
            stock=request.stock,
            publish_at=now,
            updated_at=now,
        )
        with self._transaction("CreateBook", timeout) as db:
            book_id = self.repository.create_book(db, book).id

        logger.info(f"[BookService] Book created - CreateBook: book_id={book_id}")
        self._invalidate_listing("CreateBook")

    def get_detail_book(self, book_id: int, timeout: Optional[float] = None) -> schemas.BookOut:
        with self._transaction("GetDetailBook", timeout) as db:
            book = self.repository.find_book_by_id(db, book_id)
            if book is None:
                raise errors.NotFoundError("Book not found")
            return schemas.BookOut.model_validate(book)

    def update_book(self, book_id: int, request: schemas.BookRequest, timeout: Optional[float] = None) -> None:
        book = models.Book(
            id=book_id,
            author_id=request.author_id,
            title=request.title,
            stock=request.stock,
            updated_at=_utcnow(),
        )
        with self._transaction("UpdateBook", timeout) as db:
            affected = self.repository.update_book(db, book)

        if affected == 0:
            logger.warning(f"[BookService] No book updated - UpdateBook: book_id={book_id}")
        self._invalidate_listing("UpdateBook")

    def delete_book(self, book_id: int, timeout: Optional[float] = None) -> None:
        with self._transaction("DeleteBook", timeout) as db:
            affected = self.repository.delete_book(db, book_id)

        if affected == 0:
            logger.warning(f"[BookService] No book deleted - DeleteBook: book_id={book_id}")
        self._invalidate_listing("DeleteBook")

    def get_all_books(
        self,
        pagination: schemas.Pagination,
        search: str = "",
        timeout: Optional[float] = None,
    ) -> schemas.BookListResponse:
        key = cache_key(pagination, search)
        cached = self._read_cache(key)
        if cached is not None:
            return cached

        with self._transaction("GetAllBooks", timeout) as db:
            books = self.repository.get_all_books(db, pagination, search)
            total = self.repository.count_books(db, search)
            items = [schemas.BookOut.model_validate(book) for book in books]

        result = schemas.BookListResponse(items=items, meta=pagination.with_total(total))
        self._write_cache(key, result)
        return result

    def get_recommendation_book(self, user_id: int, timeout: Optional[float] = None) -> List[schemas.BookOut]:
        with self._transaction("GetRecommendationBook", timeout) as db:
            books = self.repository.get_recommendation_books(db, user_id, self.recommendation_limit)
            return [schemas.BookOut.model_validate(book) for book in books]

    def decrease_stock(self, book_id: int, timeout: Optional[float] = None) -> None:
        with self._transaction("DecreaseStock", timeout) as db:
            if self.repository.decrement_stock(db, book_id, _utcnow()) == 0:
                if self.repository.find_book_by_id(db, book_id) is None:
                    raise errors.NotFoundError("Book not found")
                logger.warning(f"[BookService] Book is out of stock - DecreaseStock: book_id={book_id}")
                raise errors.OutOfStockError()

        self._invalidate_listing("DecreaseStock")

    def increase_stock(self, book_id: int, timeout: Optional[float] = None) -> None:
        with self._transaction("IncreaseStock", timeout) as db:
            if self.repository.increment_stock(db, book_id, _utcnow()) == 0:
                raise errors.NotFoundError("Book not found")

        self._invalidate_listing("IncreaseStock")


def _reason(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


@lru_cache
def get_book_service() -> BookService:
    return BookService(SessionLocal, SqlBookRepository(), get_book_cache())
