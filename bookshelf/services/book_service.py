from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from bookshelf.db.models import Book, Category, Format
from bookshelf.models.schemas import BookIn, BookOut, BookPage

logger = logging.getLogger(__name__)


def _check_references(db: Session, data: BookIn) -> None:
    if db.get(Category, data.category_id) is None:
        raise ValueError("Category not found")
    if db.get(Format, data.format_id) is None:
        raise ValueError("Format not found")


def _load(db: Session, book_id: int) -> Book | None:
    stmt = select(Book).options(joinedload(Book.category), joinedload(Book.format)).where(Book.id == book_id)
    return db.execute(stmt).scalar_one_or_none()


def list_books(db: Session, query: str = "", page: int = 0, size: int = 10) -> BookPage:
    stmt = select(Book)
    if query:
        stmt = stmt.where(Book.title.contains(query))

    total = db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
    rows = (
        db.execute(
            stmt.options(joinedload(Book.category), joinedload(Book.format))
            .order_by(Book.id)
            .offset(page * size)
            .limit(size)
        )
        .scalars()
        .all()
    )
    return BookPage(
        content=[BookOut.model_validate(row) for row in rows],
        page=page,
        size=size,
        total_elements=total,
        total_pages=(total + size - 1) // size,
    )


def get_book(db: Session, book_id: int) -> BookOut | None:
    book = _load(db, book_id)
    return BookOut.model_validate(book) if book else None


def create_book(db: Session, data: BookIn) -> BookOut:
    _check_references(db, data)
    book = Book(title=data.title, isbn=data.isbn, category_id=data.category_id, format_id=data.format_id)
    db.add(book)
    db.commit()

    logger.info("book.created", extra={"book_id": book.id, "title": book.title})
    return BookOut.model_validate(_load(db, book.id))


def update_book(db: Session, book_id: int, data: BookIn) -> BookOut:
    book = db.get(Book, book_id)
    if book is None:
        raise LookupError("Book not found")
    _check_references(db, data)

    book.title = data.title
    book.isbn = data.isbn
    book.category_id = data.category_id
    book.format_id = data.format_id
    db.commit()

    logger.info("book.updated", extra={"book_id": book_id})
    return BookOut.model_validate(_load(db, book_id))


def delete_book(db: Session, book_id: int) -> None:
    book = db.get(Book, book_id)
    if book is None:
        raise LookupError("Book not found")
    db.delete(book)
    db.commit()

    logger.info("book.deleted", extra={"book_id": book_id})


def list_categories(db: Session) -> list[Category]:
    return list(db.execute(select(Category).order_by(Category.id)).scalars())


def list_formats(db: Session) -> list[Format]:
    return list(db.execute(select(Format).order_by(Format.id)).scalars())
