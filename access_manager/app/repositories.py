from typing import List, Optional, Sequence
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from .entities import ActionIntent
from .models import RequestDraft


async def create_draft(
    session: AsyncSession,
    user_id: str,
    intent: ActionIntent,
    resource_names: Sequence[str],
    workstation: Optional[str],
) -> RequestDraft:
    """
    Сохранить черновик заявки.
    Возвращает созданную запись RequestDraft.
    """
    draft = RequestDraft(
        user_id=user_id,
        action=intent.action.value,
        reason=intent.reason,
        is_temporary=intent.is_temporary,
        temporary_until=intent.temporary_until,
        resources="\n".join(resource_names),
        workstation=workstation,
    )
    session.add(draft)
    await session.commit()
    await session.refresh(draft)
    return draft


async def get_draft(session: AsyncSession, draft_id: int) -> Optional[RequestDraft]:
    """Вернуть черновик по идентификатору или None."""
    res = await session.execute(select(RequestDraft).where(RequestDraft.id == draft_id))
    return res.scalar_one_or_none()


async def get_user_drafts(session: AsyncSession, user_id: str) -> List[RequestDraft]:
    """Вернуть все черновики пользователя (по убыванию id)."""
    res = await session.execute(
        select(RequestDraft)
        .where(RequestDraft.user_id == user_id)
        .order_by(RequestDraft.id.desc())
    )
    return list(res.scalars().all())
