import logging
from typing import Callable, List, Optional, Sequence

from .catalog import DirectoryCatalog
from .directory import DirectoryClient
from .entities import ActionIntent, Applicant, DirectoryResource, RequestLine, name_key
from .errors import ResourceNotFound
from .filtering import filter_resources
from .identity import LocalEnvironment
from .messaging import NotificationDispatcher
from .owners import OwnerResolver
from .reconciler import reconcile
from .submitter import RequestSubmitter, SubmissionOutcome

logger = logging.getLogger(__name__)


class RequestSession:
    """
    Рабочая сессия заявителя: снимок каталога, строки заявки и выбранная рабочая станция.
    Снимок каталога после загрузки только читается; изменяются лишь флаги requested.
    Потребитель (UI/API) может подписаться на изменения через on_change.
    """

    def __init__(
        self,
        client: DirectoryClient,
        dispatcher: NotificationDispatcher,
        environment: LocalEnvironment,
        group_category: str = "group",
        workstation_category: str = "computer",
        owner_lookup_timeout: Optional[float] = None,
        on_change: Optional[Callable[[str], None]] = None,
    ):
        self._client = client
        self._catalog = DirectoryCatalog(client)
        self._environment = environment
        self._group_category = group_category
        self._workstation_category = workstation_category
        self._on_change = on_change
        self.submitter = RequestSubmitter(
            OwnerResolver(client, owner_lookup_timeout),
            dispatcher,
            on_transition=lambda state: self._notify("submission_state"),
        )

        self.applicant: Applicant = environment.fallback_applicant()
        self.directory_available = False
        self.warnings: List[str] = []
        self.resources: Sequence[DirectoryResource] = ()
        self.lines: List[RequestLine] = []
        self.workstations: Sequence[DirectoryResource] = ()
        self.workstation: Optional[DirectoryResource] = None

    @property
    def user_name(self) -> str:
        return self._environment.user_name

    def _notify(self, prop: str) -> None:
        if self._on_change is not None:
            self._on_change(prop)

    async def _check_directory(self) -> bool:
        try:
            return await self._client.is_reachable()
        except Exception as exc:
            logger.error("Directory reachability check failed: %s", exc)
            return False

    async def _load_applicant(self) -> Applicant:
        try:
            applicant = await self._client.fetch_applicant(self.user_name)
        except Exception as exc:
            logger.error("Failed to load applicant %s: %s", self.user_name, exc)
            self.warnings.append(f"Applicant data unavailable: {exc}")
            applicant = None
        return applicant or self._environment.fallback_applicant()

    async def load(self) -> None:
        self.directory_available = await self._check_directory()
        if not self.directory_available:
            logger.warning("Directory unavailable, using local identity %s", self.user_name)
            self.warnings.append("Directory unavailable")
            self.applicant = self._environment.fallback_applicant()
            self._notify("applicant")
            return

        self.applicant = await self._load_applicant()
        self._notify("applicant")

        groups = await self._catalog.load_catalog(self._group_category)
        memberships = await self._catalog.load_current_memberships(self.user_name)
        workstations = await self._catalog.load_catalog(self._workstation_category)
        for result in (groups, memberships, workstations):
            if not result.ok:
                self.warnings.append(result.error)

        self.resources = groups.data
        self.lines = reconcile(self.resources, memberships.data)
        self._notify("lines")

        self.workstations = workstations.data
        machine = name_key(self._environment.machine_name)
        self.workstation = next(
            (w for w in self.workstations if machine and w.key == machine), None
        )
        self._notify("workstation")
        logger.info(
            "Session for %s loaded: %d resources, %d granted",
            self.user_name,
            len(self.lines),
            sum(1 for line in self.lines if line.currently_granted),
        )

    def line(self, resource_name: str) -> RequestLine:
        key = name_key(resource_name)
        for line in self.lines:
            if key and line.resource.key == key:
                return line
        raise ResourceNotFound(resource_name)

    def search(self, query: str) -> List[RequestLine]:
        found = filter_resources(self.resources, query)
        keys = {r.key for r in found}
        matched = [line for line in self.lines if line.resource.key in keys]
        logger.info('Resource search "%s": %d found', query, len(matched))
        return matched

    def set_requested(self, resource_name: str, requested: bool) -> RequestLine:
        line = self.line(resource_name)
        line.requested = requested
        self._notify("lines")
        return line

    def select_workstation(self, name: Optional[str]) -> Optional[DirectoryResource]:
        if name is None:
            self.workstation = None
        else:
            key = name_key(name)
            self.workstation = next((w for w in self.workstations if w.key == key), None)
            if self.workstation is None:
                raise ResourceNotFound(name)
        self._notify("workstation")
        return self.workstation

    @property
    def selected_lines(self) -> List[RequestLine]:
        return [line for line in self.lines if line.requested]

    async def submit(self, intent: ActionIntent) -> SubmissionOutcome:
        return await self.submitter.submit(
            self.applicant, intent, self.lines, self.workstation
        )
