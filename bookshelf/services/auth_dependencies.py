from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from bookshelf.context import ApplicationContext
from bookshelf.db.models import Account


def get_context(request: Request) -> ApplicationContext:
    return request.app.state.context


def get_db(context: ApplicationContext = Depends(get_context)) -> Generator[Session, None, None]:
    with context.repository.session() as db:
        yield db


def get_session(request: Request) -> dict:
    return getattr(request.state, "session", None) or {}


def get_current_account(
    db: Session = Depends(get_db),
    session: dict = Depends(get_session),
) -> Account:
    account_id = session.get("sub")
    if not account_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        account_pk = int(account_id)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid session") from exc

    account = db.execute(select(Account).where(Account.id == account_pk)).scalar_one_or_none()
    if not account:
        raise HTTPException(status_code=401, detail="Account not found")
    return account
