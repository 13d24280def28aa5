from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import DeviceToken


async def _find_token(db: AsyncSession, user_id: int, token: str) -> DeviceToken | None:
    res = await db.execute(
        select(DeviceToken).where(
            DeviceToken.user_id == user_id, DeviceToken.token == token)
    )
    return res.scalars().first()


async def upsert_token(db: AsyncSession, user_id: int, token: str) -> DeviceToken:
    """Register `token` for `user_id`, refreshing `updated_at` if already known."""
    existing = await _find_token(db, user_id, token)
    if existing is not None:
        existing.updated_at = datetime.now(timezone.utc)
        await db.commit()
        await db.refresh(existing)
        return existing

    row = DeviceToken(user_id=user_id, token=token)
    db.add(row)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent registration of the same token won; reuse its row
        await db.rollback()
        existing = await _find_token(db, user_id, token)
        if existing is None:
            raise
        return existing
    await db.refresh(row)
    return row


async def list_tokens(db: AsyncSession, user_id: int) -> List[str]:
    res = await db.execute(
        select(DeviceToken.token)
        .where(DeviceToken.user_id == user_id)
        .order_by(DeviceToken.id)
    )
    return list(res.scalars().all())


async def delete_tokens(db: AsyncSession, tokens: Sequence[str]) -> int:
    """Delete every row holding one of `tokens`, whichever user registered it."""
    if not tokens:
        return 0
    result = await db.execute(
        delete(DeviceToken).where(DeviceToken.token.in_(list(tokens)))
    )
    await db.commit()
    return result.rowcount or 0


async def delete_user_tokens(db: AsyncSession, user_id: int) -> int:
    result = await db.execute(
        delete(DeviceToken).where(DeviceToken.user_id == user_id)
    )
    await db.commit()
    return result.rowcount or 0
