import asyncio
import logging
from typing import Dict, Iterable, Optional

from .directory import DirectoryClient
from .errors import OwnerUnresolvable, ResourceNotFound

logger = logging.getLogger(__name__)


class OwnerResolver:
    """
    Определение владельца ресурса (managedBy -> mail) в момент отправки.
    Результаты не кешируются: данные о владельцах могут устареть.
    Любая ошибка поиска означает «владелец не найден».
    """

    def __init__(self, client: DirectoryClient, timeout: Optional[float] = None):
        self._client = client
        self._timeout = timeout

    async def resolve_owner(self, resource_name: str) -> Optional[str]:
        if not resource_name:
            return None
        try:
            lookup = self._client.fetch_owner_email(resource_name)
            if self._timeout is not None:
                email = await asyncio.wait_for(lookup, self._timeout)
            else:
                email = await lookup
        except ResourceNotFound:
            logger.warning("Resource %s not found in directory", resource_name)
            return None
        except OwnerUnresolvable as exc:
            logger.warning("Owner of %s is unresolvable: %s", resource_name, exc)
            return None
        except asyncio.TimeoutError:
            logger.warning("Owner lookup for %s timed out", resource_name)
            return None
        except Exception as exc:
            logger.error("Owner lookup for %s failed: %s", resource_name, exc)
            return None
        return email or None

    async def resolve_many(self, resource_names: Iterable[str]) -> Dict[str, Optional[str]]:
        """
        Параллельно определить владельцев для всех имён.
        У каждого запроса свой таймаут; результат собирается до возврата управления.
        """
        names = list(dict.fromkeys(resource_names))
        emails = await asyncio.gather(*(self.resolve_owner(n) for n in names))
        return dict(zip(names, emails))
