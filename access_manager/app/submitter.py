import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Optional, Sequence, Tuple

from .composer import compose
from .entities import (
    AccessRequest,
    ActionIntent,
    Applicant,
    DirectoryResource,
    NotificationPayload,
    RequestLine,
)
from .errors import (
    DispatchFailure,
    InvalidSubmissionState,
    NoResourcesSelected,
    SubmissionError,
)
from .messaging import NotificationDispatcher
from .owners import OwnerResolver

logger = logging.getLogger(__name__)


class SubmissionState(str, Enum):
    IDLE = "idle"
    COMPOSING = "composing"
    AWAITING_OWNER_RESOLUTION = "awaiting_owner_resolution"
    READY = "ready"
    DISPATCHED = "dispatched"
    FAILED = "failed"


@dataclass(frozen=True)
class SubmissionOutcome:
    state: SubmissionState
    reason: Optional[str] = None
    recipients: FrozenSet[str] = frozenset()
    payload: Optional[NotificationPayload] = None
    unresolved: Tuple[str, ...] = field(default=())

    @property
    def ok(self) -> bool:
        return self.state is SubmissionState.DISPATCHED


class RequestSubmitter:
    """
    Конечный автомат отправки заявки:
    Idle -> Composing -> AwaitingOwnerResolution -> Ready -> Dispatched, при ошибке -> Failed.
    Повтор после Failed выполняется только явным повторным вызовом submit().
    Ошибки уровня заявки возвращаются как SubmissionOutcome, а не исключением.
    """

    RESUBMITTABLE = (SubmissionState.IDLE, SubmissionState.FAILED)

    def __init__(
        self,
        resolver: OwnerResolver,
        dispatcher: NotificationDispatcher,
        on_transition: Optional[Callable[[SubmissionState], None]] = None,
    ):
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._on_transition = on_transition
        self.state = SubmissionState.IDLE
        self.failure_reason: Optional[str] = None
        self.payload: Optional[NotificationPayload] = None
        self.recipients: FrozenSet[str] = frozenset()

    def _enter(self, state: SubmissionState) -> None:
        self.state = state
        if self._on_transition is not None:
            self._on_transition(state)

    def _fail(self, exc: SubmissionError, unresolved: Tuple[str, ...] = ()) -> SubmissionOutcome:
        self.failure_reason = str(exc)
        self._enter(SubmissionState.FAILED)
        logger.warning("Access request failed: %s", self.failure_reason)
        return SubmissionOutcome(
            state=self.state, reason=self.failure_reason, unresolved=unresolved
        )

    async def submit(
        self,
        applicant: Applicant,
        intent: ActionIntent,
        lines: Sequence[RequestLine],
        workstation: Optional[DirectoryResource] = None,
    ) -> SubmissionOutcome:
        if self.state not in self.RESUBMITTABLE:
            raise InvalidSubmissionState(f"cannot submit from state {self.state.value}")

        self.failure_reason = None
        self.payload = None
        self.recipients = frozenset()
        self._enter(SubmissionState.COMPOSING)
        try:
            return await self._run(applicant, intent, lines, workstation)
        except asyncio.CancelledError:
            self.payload = None
            self.recipients = frozenset()
            self._enter(SubmissionState.IDLE)
            logger.info("Access request abandoned before dispatch")
            raise

    async def _run(
        self,
        applicant: Applicant,
        intent: ActionIntent,
        lines: Sequence[RequestLine],
        workstation: Optional[DirectoryResource],
    ) -> SubmissionOutcome:
        request = AccessRequest(
            applicant=applicant,
            intent=intent,
            lines=[line for line in lines if line.requested],
            workstation=workstation,
        )
        if not request.lines:
            return self._fail(NoResourcesSelected())

        self._enter(SubmissionState.AWAITING_OWNER_RESOLUTION)
        owners = await self._resolver.resolve_many(request.resource_names)
        unresolved = tuple(name for name, email in owners.items() if not email)

        try:
            payload, recipients = compose(
                request.applicant, request.intent, request.lines, owners.get
            )
        except SubmissionError as exc:
            return self._fail(exc, unresolved)

        self.payload = payload
        self.recipients = recipients
        self._enter(SubmissionState.READY)

        try:
            await self._dispatcher.send(recipients, payload.subject, payload.body)
        except DispatchFailure as exc:
            return self._fail(exc, unresolved)
        except Exception as exc:
            return self._fail(DispatchFailure(str(exc)), unresolved)

        self._enter(SubmissionState.DISPATCHED)
        logger.info(
            "Access request dispatched: recipients %s", ", ".join(sorted(recipients))
        )
        return SubmissionOutcome(
            state=self.state,
            recipients=recipients,
            payload=payload,
            unresolved=unresolved,
        )
