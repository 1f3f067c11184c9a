import logging

from fastapi import APIRouter, Depends, Query, status

import schemas
from auth import get_current_user
from config import settings
from services.book_service import BookService, get_book_service

router = APIRouter(prefix="/api/v1/books", tags=["Books"])
logger = logging.getLogger(__name__)

# Handlers are plain ``def``: the service blocks on the database, so FastAPI
# runs them in its thread pool.


@router.get("", response_model=schemas.BookListResponse)
def get_all_books(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    search: str = Query(default=""),
    service: BookService = Depends(get_book_service),
):
    pagination = schemas.Pagination(page=page, page_size=limit)
    return service.get_all_books(pagination, search)


# Registered before "/{book_id}" so the literal path wins.
@router.get("/recommendation", response_model=list[schemas.BookOut])
def get_recommendation_book(
    service: BookService = Depends(get_book_service),
    user: schemas.CurrentUser = Depends(get_current_user),
):
    return service.get_recommendation_book(user.user_id)


@router.get("/{book_id}", response_model=schemas.BookOut)
def get_detail_book(
    book_id: int,
    service: BookService = Depends(get_book_service),
):
    return service.get_detail_book(book_id)


@router.post("", response_model=schemas.MessageResponse, status_code=status.HTTP_201_CREATED)
def create_book(
    book: schemas.BookRequest,
    service: BookService = Depends(get_book_service),
    user: schemas.CurrentUser = Depends(get_current_user),
):
    service.create_book(book)
    logger.info(f"Book created by user {user.user_id}")
    return {"message": "Success create data book"}


@router.put("/{book_id}", response_model=schemas.MessageResponse)
def update_book(
    book_id: int,
    book: schemas.BookRequest,
    service: BookService = Depends(get_book_service),
    user: schemas.CurrentUser = Depends(get_current_user),
):
    service.update_book(book_id, book)
    logger.info(f"Book {book_id} updated by user {user.user_id}")
    return {"message": "Success update data book"}


@router.delete("/{book_id}", response_model=schemas.MessageResponse)
def delete_book(
    book_id: int,
    service: BookService = Depends(get_book_service),
    user: schemas.CurrentUser = Depends(get_current_user),
):
    service.delete_book(book_id)
    logger.info(f"Book {book_id} deleted by user {user.user_id}")
    return {"message": "Success delete data book"}
