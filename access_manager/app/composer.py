from typing import Callable, FrozenSet, Optional, Sequence, Tuple

from .entities import ActionIntent, Applicant, NotificationPayload, RequestLine
from .errors import NoResolvableOwners, NoResourcesSelected

SUBJECT = "Access request"

OwnerLookup = Callable[[str], Optional[str]]


def render_body(
    applicant: Applicant, intent: ActionIntent, resource_names: Sequence[str]
) -> str:
    """Текст письма с фиксированным порядком полей."""
    rows = [
        f"Full name: {applicant.full_name}",
        f"Position: {applicant.position}",
        f"Tab number: {applicant.tab_number}",
        f"Phone: {applicant.phone}",
        f"Action: {intent.action.value}",
        f"Reason: {intent.reason}",
        f"Temporary: {'Yes' if intent.is_temporary else 'No'}",
    ]
    if intent.is_temporary:
        rows.append(f"Until: {intent.temporary_until.isoformat()}")
    rows.append("")
    rows.append("Requested resources:")
    rows.extend(resource_names)
    return "\n".join(rows)


def compose(
    applicant: Applicant,
    intent: ActionIntent,
    selected_lines: Sequence[RequestLine],
    owner_lookup: OwnerLookup,
) -> Tuple[NotificationPayload, FrozenSet[str]]:
    """
    Собрать письмо и множество адресов владельцев.
    Адреса сравниваются как есть, без нормализации.
    Ничего не отправляет.
    """
    if not selected_lines:
        raise NoResourcesSelected()

    names = [line.resource.name for line in selected_lines]
    recipients = set()
    for name in names:
        email = owner_lookup(name)
        if email:
            recipients.add(email)
    if not recipients:
        raise NoResolvableOwners()

    payload = NotificationPayload(subject=SUBJECT, body=render_body(applicant, intent, names))
    return payload, frozenset(recipients)
