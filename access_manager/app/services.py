import socket
from collections import OrderedDict
from typing import Optional

from .directory import DirectoryClient, HttpDirectoryClient
from .identity import LocalEnvironment
from .mailer import DraftFileDispatcher, SmtpDispatcher
from .messaging import NotificationDispatcher, QueueDispatcher
from .session import RequestSession
from .settings import settings


class SessionRegistry:
    """
    Открытые сессии заявителей в памяти процесса, по одной на пользователя.
    Хранится не более max_sessions сессий; при переполнении вытесняется давно не использованная.
    """

    def __init__(self, max_sessions: int = 1000):
        self._max_sessions = max_sessions
        self._sessions: "OrderedDict[str, RequestSession]" = OrderedDict()

    def get(self, user_id: str) -> Optional[RequestSession]:
        session = self._sessions.get(user_id)
        if session is not None:
            self._sessions.move_to_end(user_id)
        return session

    def put(self, user_id: str, session: RequestSession) -> None:
        self._sessions[user_id] = session
        self._sessions.move_to_end(user_id)
        while len(self._sessions) > self._max_sessions:
            self._sessions.popitem(last=False)

    def __len__(self) -> int:
        return len(self._sessions)

    def clear(self) -> None:
        self._sessions.clear()


registry = SessionRegistry(settings.max_sessions)


def get_registry() -> SessionRegistry:
    return registry


def get_directory_client() -> DirectoryClient:
    return HttpDirectoryClient(
        settings.directory_url,
        category_attribute=settings.directory_category_attribute,
        group_category=settings.group_category,
        timeout=settings.directory_timeout,
    )


def get_dispatcher() -> NotificationDispatcher:
    if settings.dispatch_mode == "smtp":
        return SmtpDispatcher(settings.smtp_host, settings.smtp_port, settings.mail_sender)
    if settings.dispatch_mode == "draft":
        return DraftFileDispatcher(settings.drafts_dir, settings.mail_sender)
    return QueueDispatcher()


def build_session(
    user_id: str,
    client: DirectoryClient,
    dispatcher: NotificationDispatcher,
    machine_name: Optional[str] = None,
) -> RequestSession:
    environment = LocalEnvironment(
        user_name=user_id, machine_name=machine_name or socket.gethostname()
    )
    return RequestSession(
        client,
        dispatcher,
        environment,
        group_category=settings.group_category,
        workstation_category=settings.workstation_category,
        owner_lookup_timeout=settings.owner_lookup_timeout,
    )
