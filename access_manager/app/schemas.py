from datetime import date, datetime
from pydantic import BaseModel
from typing import List, Optional

from .entities import Applicant, DirectoryResource, RequestLine


class OpenSession(BaseModel):
    """Открытие сессии: имя рабочей станции по умолчанию берётся с сервера."""

    machine_name: Optional[str] = None


class SessionOut(BaseModel):
    user_id: str
    applicant: Applicant
    directory_available: bool
    warnings: List[str]
    lines: List[RequestLine]
    workstations: List[DirectoryResource]
    workstation: Optional[DirectoryResource] = None
    submission_state: str


class SetRequested(BaseModel):
    requested: bool


class SelectWorkstation(BaseModel):
    name: Optional[str] = None


class SubmissionOut(BaseModel):
    """
    Результат отправки:
    - state: 'dispatched' или 'failed'
    - reason: причина неудачи (если есть)
    - recipients: адреса владельцев без повторов
    - unresolved: ресурсы, для которых владелец не найден
    """

    state: str
    reason: Optional[str] = None
    recipients: List[str] = []
    subject: Optional[str] = None
    body: Optional[str] = None
    unresolved: List[str] = []


class DraftOut(BaseModel):
    id: int
    user_id: str
    action: str
    reason: str
    is_temporary: bool
    temporary_until: Optional[date] = None
    resources: List[str]
    workstation: Optional[str] = None
    created_at: datetime
