from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, func

from database import Base


class Book(Base):
    __tablename__ = "books"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_books_stock_non_negative"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    author_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=False, index=True)
    stock = Column(Integer, nullable=False, default=0)
    publish_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


# The tables below belong to the category, activity and lending services.
# They are declared here only so the recommendation query can join them.

class BookCategory(Base):
    __tablename__ = "book_categories"

    book_id = Column(Integer, primary_key=True)
    category_id = Column(Integer, primary_key=True, index=True)


class UserActivity(Base):
    __tablename__ = "user_activities"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    book_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Borrow(Base):
    __tablename__ = "borrows"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, nullable=False, index=True)
    book_id = Column(Integer, nullable=False)
    borrowed_at = Column(DateTime(timezone=True), server_default=func.now())
    returned_at = Column(DateTime(timezone=True), nullable=True)
