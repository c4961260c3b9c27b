"""Game accounts saved on a user's profile."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..models import GameAccount, User
from ..utils.datetime import utcnow
from .errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("game_name", "game_id", "server", "zone_id", "nickname", "is_primary")
_REQUIRED_FIELDS = ("game_name", "game_id")


def _clear_primary(session: Session, user_id: int, keep_id: Optional[int] = None) -> None:
    stmt = update(GameAccount).where(GameAccount.user_id == user_id, GameAccount.is_primary.is_(True))
    if keep_id is not None:
        stmt = stmt.where(GameAccount.id != keep_id)
    session.execute(stmt.values(is_primary=False).execution_options(synchronize_session="fetch"))


def get_game_account(session: Session, account_id: int, *, user_id: int) -> GameAccount:
    """Load a saved account; accounts of other users are reported as missing."""

    account = session.get(GameAccount, account_id)
    if account is None or account.user_id != user_id:
        raise NotFound(f"Game account {account_id} not found", reason="game_account_not_found")
    return account


def list_game_accounts(session: Session, user_id: int) -> Sequence[GameAccount]:
    stmt = (
        select(GameAccount)
        .where(GameAccount.user_id == user_id)
        .order_by(GameAccount.is_primary.desc(), GameAccount.created_at.asc(), GameAccount.id.asc())
    )
    return session.execute(stmt).scalars().all()


def create_game_account(
    session: Session,
    *,
    user_id: int,
    game_name: str,
    game_id: str,
    server: Optional[str] = None,
    zone_id: Optional[str] = None,
    nickname: Optional[str] = None,
    is_primary: bool = False,
) -> GameAccount:
    """Save a game account. The first one a user saves becomes primary."""

    if session.get(User, user_id) is None:
        raise NotFound(f"User {user_id} not found", reason="user_not_found")
    if not (game_name or "").strip() or not (game_id or "").strip():
        raise ValidationFailed("Game name and game id are required.", reason="game_account_required")

    has_accounts = session.execute(
        select(GameAccount.id).where(GameAccount.user_id == user_id).limit(1)
    ).first() is not None
    is_primary = is_primary or not has_accounts
    if is_primary:
        _clear_primary(session, user_id)

    account = GameAccount(
        user_id=user_id,
        game_name=game_name.strip(),
        game_id=game_id.strip(),
        server=server,
        zone_id=zone_id,
        nickname=nickname,
        is_primary=is_primary,
    )
    session.add(account)
    session.flush()
    logger.info("game account %s saved for user %s", account.id, user_id)
    return account


def update_game_account(session: Session, account_id: int, *, user_id: int, **changes) -> GameAccount:
    """Edit a saved account. Past transactions keep their own snapshot."""

    unknown = set(changes) - set(_EDITABLE_FIELDS)
    if unknown:
        raise ValidationFailed(f"Fields not editable: {', '.join(sorted(unknown))}", reason="field_not_editable")

    account = get_game_account(session, account_id, user_id=user_id)
    for field, value in changes.items():
        if field in _REQUIRED_FIELDS:
            if value is None or not str(value).strip():
                raise ValidationFailed("Game name and game id are required.", reason="game_account_required")
            value = str(value).strip()
        if field == "is_primary":
            if value is None:
                continue
            if value:
                _clear_primary(session, user_id, keep_id=account.id)
        setattr(account, field, value)
    account.updated_at = utcnow()
    session.flush()
    return account


def delete_game_account(session: Session, account_id: int, *, user_id: int) -> None:
    """Remove a saved account, promoting the oldest remaining one if it was primary."""

    account = get_game_account(session, account_id, user_id=user_id)
    was_primary = account.is_primary
    session.delete(account)
    session.flush()

    if was_primary:
        successor = session.execute(
            select(GameAccount)
            .where(GameAccount.user_id == user_id)
            .order_by(GameAccount.created_at.asc(), GameAccount.id.asc())
            .limit(1)
        ).scalar_one_or_none()
        if successor is not None:
            successor.is_primary = True
            session.flush()
    logger.info("game account %s removed for user %s", account_id, user_id)
