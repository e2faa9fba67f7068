import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Generic, Optional, Tuple, TypeVar

from .directory import DirectoryClient
from .entities import DirectoryResource, name_key

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class LoadResult(Generic[T]):
    """
    Результат загрузки из каталога.
    При ошибке data пустое, а error содержит описание для пользователя.
    """

    data: T
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DirectoryCatalog:
    """
    Снимок каталога на время сессии: ресурсы по категориям и группы заявителя.
    Успешно загруженные данные кешируются и далее только читаются.
    """

    def __init__(self, client: DirectoryClient):
        self._client = client
        self._resources: Dict[str, Tuple[DirectoryResource, ...]] = {}
        self._memberships: Dict[str, FrozenSet[str]] = {}

    async def load_catalog(self, category: str) -> LoadResult[Tuple[DirectoryResource, ...]]:
        if category in self._resources:
            return LoadResult(self._resources[category])
        logger.info("Loading %s catalog from directory", category)
        try:
            resources = tuple(await self._client.fetch_resources_by_category(category))
        except Exception as exc:
            logger.error("Failed to load %s catalog: %s", category, exc)
            return LoadResult((), f"Directory unavailable: {exc}")
        self._resources[category] = resources
        logger.info("Loaded %d %s entries", len(resources), category)
        return LoadResult(resources)

    async def load_current_memberships(self, identity: str) -> LoadResult[FrozenSet[str]]:
        if identity in self._memberships:
            return LoadResult(self._memberships[identity])
        try:
            groups = await self._client.fetch_groups_for_user(identity)
        except Exception as exc:
            logger.error("Failed to load groups of %s: %s", identity, exc)
            return LoadResult(frozenset(), f"Directory unavailable: {exc}")
        memberships = frozenset(name_key(g) for g in groups if g)
        self._memberships[identity] = memberships
        return LoadResult(memberships)
