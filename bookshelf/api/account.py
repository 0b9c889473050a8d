from __future__ import annotations

from fastapi import APIRouter, Depends, Form, HTTPException, Response
from sqlalchemy import select
from sqlalchemy.orm import Session

from bookshelf.context import ApplicationContext
from bookshelf.db.models import Account
from bookshelf.models.schemas import AccountOut
from bookshelf.services.auth_dependencies import get_context, get_current_account, get_db, get_session
from bookshelf.services.auth_service import create_session_token, verify_password

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login")
def login(
    response: Response,
    username: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
    context: ApplicationContext = Depends(get_context),
) -> dict[str, str]:
    account = db.execute(select(Account).where(Account.username == username.strip())).scalar_one_or_none()
    if not account or not verify_password(password, account.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    settings = context.settings
    token = create_session_token(settings, account_id=account.id, username=account.username)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
    )
    return {"status": "ok"}


@router.post("/logout")
def logout(response: Response, context: ApplicationContext = Depends(get_context)) -> dict[str, str]:
    response.delete_cookie(context.settings.session_cookie_name)
    return {"status": "ok"}


@router.get("/loginStatus")
def login_status(session: dict = Depends(get_session)) -> dict[str, bool]:
    return {"logged_in": bool(session.get("sub"))}


@router.get("/loginAccount", response_model=AccountOut)
def login_account(account: Account = Depends(get_current_account)) -> AccountOut:
    return AccountOut(id=account.id, username=account.username, authority=account.authority.name)
