"""Record store gateway for books.

Every method takes the caller's ``Session``; the session's open transaction
is the unit of work. Nothing here commits, rolls back or applies business
rules. Writes report the number of affected rows so the caller decides what
zero rows means.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Query, Session

import models
from schemas import Pagination


class BookRepository(ABC):
    @abstractmethod
    def create_book(self, db: Session, book: models.Book) -> models.Book: ...

    @abstractmethod
    def find_book_by_id(self, db: Session, book_id: int) -> Optional[models.Book]: ...

    @abstractmethod
    def update_book(self, db: Session, book: models.Book) -> int: ...

    @abstractmethod
    def delete_book(self, db: Session, book_id: int) -> int: ...

    @abstractmethod
    def get_all_books(self, db: Session, pagination: Pagination, search: str) -> List[models.Book]: ...

    @abstractmethod
    def count_books(self, db: Session, search: str) -> int: ...

    @abstractmethod
    def get_recommendation_books(self, db: Session, user_id: int, limit: int) -> List[models.Book]: ...

    @abstractmethod
    def decrement_stock(self, db: Session, book_id: int, updated_at: datetime) -> int: ...

    @abstractmethod
    def increment_stock(self, db: Session, book_id: int, updated_at: datetime) -> int: ...


class SqlBookRepository(BookRepository):
    def create_book(self, db: Session, book: models.Book) -> models.Book:
        db.add(book)
        db.flush()
        return book

    def find_book_by_id(self, db: Session, book_id: int) -> Optional[models.Book]:
        return db.query(models.Book).filter(models.Book.id == book_id).first()

    def update_book(self, db: Session, book: models.Book) -> int:
        return (
            db.query(models.Book)
            .filter(models.Book.id == book.id)
            .update(
                {
                    models.Book.author_id: book.author_id,
                    models.Book.title: book.title,
                    models.Book.stock: book.stock,
                    models.Book.updated_at: book.updated_at,
                },
                synchronize_session=False,
            )
        )

    def delete_book(self, db: Session, book_id: int) -> int:
        return (
            db.query(models.Book)
            .filter(models.Book.id == book_id)
            .delete(synchronize_session=False)
        )

    def _search(self, db: Session, search: str) -> Query:
        query = db.query(models.Book)
        if search:
            query = query.filter(models.Book.title.ilike(f"%{search}%"))
        return query

    def get_all_books(self, db: Session, pagination: Pagination, search: str) -> List[models.Book]:
        return (
            self._search(db, search)
            .order_by(models.Book.title.asc(), models.Book.publish_at.desc())
            .limit(pagination.page_size)
            .offset(pagination.offset)
            .all()
        )

    def count_books(self, db: Session, search: str) -> int:
        return self._search(db, search).count()

    def get_recommendation_books(self, db: Session, user_id: int, limit: int) -> List[models.Book]:
        # categories of every book the user has touched
        category_ids = (
            select(models.BookCategory.category_id)
            .join(models.UserActivity, models.UserActivity.book_id == models.BookCategory.book_id)
            .where(models.UserActivity.user_id == user_id)
        )
        candidate_ids = select(models.BookCategory.book_id).where(
            models.BookCategory.category_id.in_(category_ids)
        )
        on_loan_ids = select(models.Borrow.book_id).where(
            models.Borrow.user_id == user_id,
            models.Borrow.returned_at.is_(None),
        )
        return (
            db.query(models.Book)
            .filter(models.Book.id.in_(candidate_ids))
            .filter(models.Book.id.not_in(on_loan_ids))
            .order_by(func.random())
            .limit(limit)
            .all()
        )

    def decrement_stock(self, db: Session, book_id: int, updated_at: datetime) -> int:
        # Zero rows means missing or already at 0. The new value comes from
        # the row the store holds, never from an earlier read.
        return (
            db.query(models.Book)
            .filter(models.Book.id == book_id, models.Book.stock > 0)
            .update(
                {
                    models.Book.stock: models.Book.stock - 1,
                    models.Book.updated_at: updated_at,
                },
                synchronize_session=False,
            )
        )

    def increment_stock(self, db: Session, book_id: int, updated_at: datetime) -> int:
        return (
            db.query(models.Book)
            .filter(models.Book.id == book_id)
            .update(
                {
                    models.Book.stock: models.Book.stock + 1,
                    models.Book.updated_at: updated_at,
                },
                synchronize_session=False,
            )
        )
