from typing import AbstractSet, Iterable, List

from .entities import DirectoryResource, RequestLine, name_key


def reconcile(
    resources: Iterable[DirectoryResource], memberships: AbstractSet[str]
) -> List[RequestLine]:
    """
    Построить строки заявки с текущим состоянием доступа.
    requested изначально совпадает с currently_granted, поэтому неизменённая заявка пуста по смыслу.
    memberships должны быть уже нормализованы через name_key.
    """
    lines = []
    for resource in resources:
        key = name_key(resource.name)
        granted = bool(key) and key in memberships
        lines.append(
            RequestLine(resource=resource, currently_granted=granted, requested=granted)
        )
    return lines
