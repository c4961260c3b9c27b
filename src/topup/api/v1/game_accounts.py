"""Saved game accounts on a user's profile."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...schemas import GameAccountCreate, GameAccountRead, GameAccountUpdate
from ...services import game_account_service
from ...services.errors import ServiceError

router = APIRouter(prefix="/users/{user_id}/game-accounts", tags=["game-accounts"])


@router.get("", response_model=List[GameAccountRead], summary="List saved game accounts")
def list_game_accounts(user_id: int, db: Session = Depends(get_db)) -> List[GameAccountRead]:
    return list(game_account_service.list_game_accounts(db, user_id))


@router.post("", response_model=GameAccountRead, status_code=status.HTTP_201_CREATED, summary="Save a game account")
def create_game_account(user_id: int, payload: GameAccountCreate, db: Session = Depends(get_db)) -> GameAccountRead:
    try:
        account = game_account_service.create_game_account(db, user_id=user_id, **payload.model_dump())
        db.commit()
        db.refresh(account)
        return account
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.put("/{account_id}", response_model=GameAccountRead, summary="Edit a saved game account")
def update_game_account(
    user_id: int,
    account_id: int,
    payload: GameAccountUpdate,
    db: Session = Depends(get_db),
) -> GameAccountRead:
    """Edits never touch transactions already created from this account."""

    try:
        account = game_account_service.update_game_account(
            db, account_id, user_id=user_id, **payload.model_dump(exclude_unset=True)
        )
        db.commit()
        db.refresh(account)
        return account
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Remove a saved game account")
def delete_game_account(user_id: int, account_id: int, db: Session = Depends(get_db)) -> Response:
    try:
        game_account_service.delete_game_account(db, account_id, user_id=user_id)
        db.commit()
    except ServiceError as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.as_dict()) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
