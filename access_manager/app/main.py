import asyncio
from fastapi import FastAPI, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from . import schemas
from . import repositories as repo
from .consumer import run_consumer
from .deps import get_session
from .directory import DirectoryClient
from .entities import ActionIntent
from .errors import InvalidSubmissionState, ResourceNotFound
from .logging_config import configure_logging
from .messaging import NotificationDispatcher
from .models import RequestDraft
from .services import (
    SessionRegistry,
    build_session,
    get_directory_client,
    get_dispatcher,
    get_registry,
)
from .session import RequestSession
from .settings import settings
from .submitter import SubmissionOutcome

app = FastAPI(
    title="Access Manager",
    version="1.0.0",
    description=(
        "Заявки сотрудников на изменение членства в группах каталога. "
        "Сверяет текущие права с запрошенными, определяет владельцев ресурсов "
        "и отправляет им одно письмо без повторов адресатов."
    ),
)


@app.on_event("startup")
async def startup_event():
    configure_logging()
    if settings.run_mail_worker:
        asyncio.create_task(run_consumer())


def require_session(user_id: str, registry: SessionRegistry) -> RequestSession:
    session = registry.get(user_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def session_out(session: RequestSession) -> schemas.SessionOut:
    return schemas.SessionOut(
        user_id=session.user_name,
        applicant=session.applicant,
        directory_available=session.directory_available,
        warnings=session.warnings,
        lines=session.lines,
        workstations=list(session.workstations),
        workstation=session.workstation,
        submission_state=session.submitter.state.value,
    )


def submission_out(outcome: SubmissionOutcome) -> schemas.SubmissionOut:
    return schemas.SubmissionOut(
        state=outcome.state.value,
        reason=outcome.reason,
        recipients=sorted(outcome.recipients),
        subject=outcome.payload.subject if outcome.payload else None,
        body=outcome.payload.body if outcome.payload else None,
        unresolved=list(outcome.unresolved),
    )


def draft_out(draft: RequestDraft) -> schemas.DraftOut:
    return schemas.DraftOut(
        id=draft.id,
        user_id=draft.user_id,
        action=draft.action,
        reason=draft.reason,
        is_temporary=draft.is_temporary,
        temporary_until=draft.temporary_until,
        resources=draft.resource_names,
        workstation=draft.workstation,
        created_at=draft.created_at,
    )


@app.get("/health", tags=["Техническое"], summary="Проверка здоровья")
async def health(client: DirectoryClient = Depends(get_directory_client)):
    """Статус сервиса и доступность каталога."""
    return {"status": "ok", "directory": await client.is_reachable()}


@app.post(
    "/sessions/{user_id}",
    response_model=schemas.SessionOut,
    tags=["Сессии"],
    summary="Открыть сессию заявителя",
    description=(
        "Загружает данные заявителя, каталог групп, рабочие станции и текущие группы "
        "пользователя. При недоступности каталога используется локальная идентичность, "
        "а каталог остаётся пустым."
    ),
)
async def open_session(
    user_id: str,
    body: schemas.OpenSession = schemas.OpenSession(),
    registry: SessionRegistry = Depends(get_registry),
    client: DirectoryClient = Depends(get_directory_client),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Создать (или пересоздать) сессию пользователя и загрузить снимок каталога."""
    session = build_session(user_id, client, dispatcher, body.machine_name)
    await session.load()
    registry.put(user_id, session)
    return session_out(session)


@app.get(
    "/sessions/{user_id}",
    response_model=schemas.SessionOut,
    tags=["Сессии"],
    summary="Состояние сессии",
)
async def get_session_state(
    user_id: str, registry: SessionRegistry = Depends(get_registry)
):
    return session_out(require_session(user_id, registry))


@app.get(
    "/sessions/{user_id}/resources",
    tags=["Сессии"],
    summary="Поиск ресурсов",
    description="Подстрока в имени или описании ресурса, без учёта регистра.",
)
async def search_resources(
    user_id: str, q: str = "", registry: SessionRegistry = Depends(get_registry)
):
    session = require_session(user_id, registry)
    return [line.model_dump() for line in session.search(q)]


@app.put(
    "/sessions/{user_id}/lines/{resource_name}",
    tags=["Сессии"],
    summary="Отметить ресурс в заявке",
    description="Меняет только намерение пользователя; текущее состояние доступа не изменяется.",
)
async def set_requested(
    user_id: str,
    resource_name: str,
    body: schemas.SetRequested,
    registry: SessionRegistry = Depends(get_registry),
):
    session = require_session(user_id, registry)
    try:
        line = session.set_requested(resource_name, body.requested)
    except ResourceNotFound:
        raise HTTPException(status_code=404, detail="Resource not found")
    return line.model_dump()


@app.put(
    "/sessions/{user_id}/workstation",
    tags=["Сессии"],
    summary="Выбрать рабочую станцию",
)
async def select_workstation(
    user_id: str,
    body: schemas.SelectWorkstation,
    registry: SessionRegistry = Depends(get_registry),
):
    session = require_session(user_id, registry)
    try:
        workstation = session.select_workstation(body.name)
    except ResourceNotFound:
        raise HTTPException(status_code=404, detail="Workstation not found")
    return {"workstation": workstation.model_dump() if workstation else None}


@app.post(
    "/sessions/{user_id}/submit",
    response_model=schemas.SubmissionOut,
    tags=["Заявки"],
    summary="Отправить заявку владельцам",
    description=(
        "Определяет владельцев выбранных ресурсов и отправляет одно письмо. "
        "Если ресурсы не выбраны, владельцы не найдены или отправка не удалась, "
        "возвращает 422 с причиной; заявку можно отправить повторно."
    ),
)
async def submit(
    user_id: str,
    body: ActionIntent,
    registry: SessionRegistry = Depends(get_registry),
):
    session = require_session(user_id, registry)
    try:
        outcome = await session.submit(body)
    except InvalidSubmissionState as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    out = submission_out(outcome)
    if not outcome.ok:
        return JSONResponse(status_code=422, content=out.model_dump(mode="json"))
    return out


@app.post(
    "/sessions/{user_id}/drafts",
    response_model=schemas.DraftOut,
    tags=["Черновики"],
    summary="Сохранить черновик",
    description="Сохраняет выбранные ресурсы и параметры заявки без отправки.",
)
async def save_draft(
    user_id: str,
    body: ActionIntent,
    registry: SessionRegistry = Depends(get_registry),
    db: AsyncSession = Depends(get_session),
):
    session = require_session(user_id, registry)
    draft = await repo.create_draft(
        db,
        user_id,
        body,
        [line.resource.name for line in session.selected_lines],
        session.workstation.name if session.workstation else None,
    )
    return draft_out(draft)


@app.get(
    "/drafts/{draft_id}",
    response_model=schemas.DraftOut,
    tags=["Черновики"],
    summary="Получить черновик",
)
async def get_draft(draft_id: int, db: AsyncSession = Depends(get_session)):
    """Получить черновик по идентификатору."""
    draft = await repo.get_draft(db, draft_id)
    if not draft:
        raise HTTPException(status_code=404, detail="Draft not found")
    return draft_out(draft)


@app.get(
    "/drafts/user/{user_id}",
    tags=["Черновики"],
    summary="Все черновики пользователя",
    description="Возвращает черновики пользователя (по убыванию id).",
)
async def get_user_drafts(user_id: str, db: AsyncSession = Depends(get_session)):
    items = await repo.get_user_drafts(db, user_id)
    return [draft_out(i) for i in items]
