from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def name_key(name: Optional[str]) -> str:
    """
    Единая нормализация имени ресурса для сравнений и множеств.
    Пустое/отсутствующее имя даёт пустой ключ, который никогда не должен совпадать.
    """
    return (name or "").lower()


class DirectoryResource(BaseModel):
    """
    Объект каталога (группа или рабочая станция).
    Поля заполняются один раз на границе с каталогом; отсутствующие атрибуты становятся пустыми строками.
    """

    model_config = ConfigDict(frozen=True)

    name: str = ""
    display_name: str = ""
    description: str = ""
    distinguished_name: str = ""
    email: str = ""
    telephone: str = ""
    employee_id: str = ""

    @property
    def key(self) -> str:
        return name_key(self.name)


class RequestLine(BaseModel):
    """
    Строка заявки: ресурс, текущее состояние доступа и намерение пользователя.
    currently_granted фиксируется при создании, изменяемо только requested.
    """

    resource: DirectoryResource = Field(frozen=True)
    currently_granted: bool = Field(frozen=True)
    requested: bool

    @property
    def changed(self) -> bool:
        return self.currently_granted != self.requested


class Applicant(BaseModel):
    model_config = ConfigDict(frozen=True)

    full_name: str
    tab_number: str = "-"
    position: str = "Not specified"
    phone: str = "-"


class ActionType(str, Enum):
    ADD = "Add"
    REMOVE = "Remove"
    MODIFY = "Modify"


class ActionIntent(BaseModel):
    """Тип действия, причина и срок действия (для временного доступа)."""

    model_config = ConfigDict(frozen=True)

    action: ActionType = ActionType.ADD
    reason: str = ""
    is_temporary: bool = False
    temporary_until: Optional[date] = None

    @model_validator(mode="after")
    def check_temporality(self) -> "ActionIntent":
        if self.is_temporary and self.temporary_until is None:
            raise ValueError("temporary_until is required for a temporary request")
        if not self.is_temporary and self.temporary_until is not None:
            raise ValueError("temporary_until is only allowed for a temporary request")
        return self


class AccessRequest(BaseModel):
    """Единица отправки: собирается только в момент отправки и нигде не хранится."""

    model_config = ConfigDict(frozen=True)

    applicant: Applicant
    intent: ActionIntent
    lines: List[RequestLine]
    workstation: Optional[DirectoryResource] = None

    @property
    def resource_names(self) -> List[str]:
        return [line.resource.name for line in self.lines]


class NotificationPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    subject: str
    body: str
