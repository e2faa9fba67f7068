from typing import Sequence

from .entities import DirectoryResource


def filter_resources(
    resources: Sequence[DirectoryResource], query: str
) -> Sequence[DirectoryResource]:
    """
    Отобрать ресурсы, в имени или описании которых есть подстрока query (без учёта регистра).
    Пустой запрос возвращает исходную последовательность без изменений.
    """
    if not query or not query.strip():
        return resources
    needle = query.lower()
    return [
        r
        for r in resources
        if needle in r.name.lower() or needle in r.description.lower()
    ]
