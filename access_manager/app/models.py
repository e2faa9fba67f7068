from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Boolean, Date, Integer, String, Text, DateTime
from datetime import date, datetime, timezone
from typing import List, Optional
from .db import Base


class RequestDraft(Base):
    """
    Черновик заявки на изменение прав.
    Поля:
    - user_id: учётная запись заявителя
    - action: тип действия ('Add' | 'Remove' | 'Modify')
    - reason: обоснование
    - is_temporary / temporary_until: срок временного доступа
    - resources: имена выбранных ресурсов через перевод строки, в порядке выбора
    - workstation: выбранная рабочая станция (если есть)
    - created_at: отметка времени
    """

    __tablename__ = "request_drafts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[str] = mapped_column(String(100), index=True)
    action: Mapped[str] = mapped_column(String(20))
    reason: Mapped[str] = mapped_column(Text, default="")
    is_temporary: Mapped[bool] = mapped_column(Boolean, default=False)
    temporary_until: Mapped[Optional[date]] = mapped_column(Date)
    resources: Mapped[str] = mapped_column(Text, default="")
    workstation: Mapped[Optional[str]] = mapped_column(String(200))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    @property
    def resource_names(self) -> List[str]:
        return [n for n in self.resources.split("\n") if n]
