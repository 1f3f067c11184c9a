"""Stock procedures called by the ordering and lending services.

Failures are reported in the body (``success=False``) with HTTP 200; callers
must check the flag.
"""

import logging

from fastapi import APIRouter, Depends

import errors, schemas
from services.book_service import BookService, get_book_service

router = APIRouter(prefix="/internal/books", tags=["Internal"])
logger = logging.getLogger(__name__)


@router.post("/{book_id}/decrease-stock", response_model=schemas.StockAdjustmentResponse)
def decrease_stock(book_id: int, service: BookService = Depends(get_book_service)):
    try:
        service.decrease_stock(book_id)
    except errors.CatalogError as exc:
        logger.info(f"Decrease stock rejected for book {book_id}: {exc.message}")
        return schemas.StockAdjustmentResponse(success=False, message=exc.message)
    return schemas.StockAdjustmentResponse(success=True, message="Book stock decreased successfully")


@router.post("/{book_id}/increase-stock", response_model=schemas.StockAdjustmentResponse)
def increase_stock(book_id: int, service: BookService = Depends(get_book_service)):
    try:
        service.increase_stock(book_id)
    except errors.CatalogError as exc:
        logger.info(f"Increase stock rejected for book {book_id}: {exc.message}")
        return schemas.StockAdjustmentResponse(success=False, message=exc.message)
    return schemas.StockAdjustmentResponse(success=True, message="Book stock increased successfully")
