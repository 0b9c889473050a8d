from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from bookshelf.db.models import Account
from bookshelf.models.schemas import BookIn, BookOut, BookPage, CategoryOut, FormatOut
from bookshelf.services.auth_dependencies import get_current_account, get_db
from bookshelf.services.book_service import (
    create_book,
    delete_book,
    get_book,
    list_books,
    list_categories,
    list_formats,
    update_book,
)

router = APIRouter(prefix="/api", tags=["books"])


@router.get("/books", response_model=BookPage)
def get_books(
    query: str = "",
    page: int = Query(default=0, ge=0),
    size: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> BookPage:
    return list_books(db=db, query=query, page=page, size=size)


@router.get("/books/{book_id}", response_model=BookOut)
def get_book_by_id(book_id: int, db: Session = Depends(get_db)) -> BookOut:
    book = get_book(db=db, book_id=book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.post("/books", response_model=BookOut)
def post_book(
    data: BookIn,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> BookOut:
    _ = account  # auth gate
    try:
        return create_book(db=db, data=data)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.put("/books/{book_id}", response_model=BookOut)
def put_book(
    book_id: int,
    data: BookIn,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> BookOut:
    _ = account
    try:
        return update_book(db=db, book_id=book_id, data=data)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.delete("/books/{book_id}")
def remove_book(
    book_id: int,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> dict[str, str]:
    _ = account
    try:
        delete_book(db=db, book_id=book_id)
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"status": "deleted"}


@router.get("/categories", response_model=list[CategoryOut])
def get_categories(db: Session = Depends(get_db)) -> list[CategoryOut]:
    return [CategoryOut.model_validate(c) for c in list_categories(db)]


@router.get("/formats", response_model=list[FormatOut])
def get_formats(db: Session = Depends(get_db)) -> list[FormatOut]:
    return [FormatOut.model_validate(f) for f in list_formats(db)]
