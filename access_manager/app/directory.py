import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol
from urllib.parse import quote

import httpx

from .entities import Applicant, DirectoryResource
from .errors import DirectoryUnavailable, OwnerUnresolvable, ResourceNotFound

logger = logging.getLogger(__name__)

RESOURCE_ATTRIBUTES = (
    "cn",
    "name",
    "description",
    "displayName",
    "mail",
    "telephoneNumber",
    "employeeID",
    "distinguishedName",
)
USER_ATTRIBUTES = ("displayName", "description", "telephoneNumber", "employeeID")
SEARCH_SIZE_LIMIT = 500


class DirectoryClient(Protocol):
    async def fetch_resources_by_category(self, category: str) -> List[DirectoryResource]: ...

    async def fetch_groups_for_user(self, identity: str) -> List[str]: ...

    async def fetch_owner_email(self, resource_name: str) -> Optional[str]: ...

    async def fetch_applicant(self, identity: str) -> Optional[Applicant]: ...

    async def is_reachable(self) -> bool: ...


def escape_filter_value(value: str) -> str:
    """Экранирование значения для LDAP-фильтра (RFC 4515)."""
    out = []
    for ch in value:
        if ch in "\\*()\x00":
            out.append("\\%02x" % ord(ch))
        else:
            out.append(ch)
    return "".join(out)


def first_value(entry: Mapping[str, Any], attribute: str) -> str:
    """Первое значение атрибута записи каталога или пустая строка."""
    value = entry.get(attribute)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return ""
    return str(value)


def entry_to_resource(entry: Mapping[str, Any]) -> DirectoryResource:
    return DirectoryResource(
        name=first_value(entry, "name") or first_value(entry, "cn"),
        display_name=first_value(entry, "displayName"),
        description=first_value(entry, "description"),
        distinguished_name=first_value(entry, "distinguishedName"),
        email=first_value(entry, "mail"),
        telephone=first_value(entry, "telephoneNumber"),
        employee_id=first_value(entry, "employeeID"),
    )


class HttpDirectoryClient:
    """
    Клиент HTTP-шлюза каталога.
    Шлюз принимает LDAP-фильтры и возвращает записи как словари атрибут -> список значений.
    Ошибки транспорта превращаются в DirectoryUnavailable.
    """

    def __init__(
        self,
        base_url: str,
        category_attribute: str = "objectCategory",
        group_category: str = "group",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url
        self._category_attribute = category_attribute
        self._group_category = group_category
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        )

    def category_filter(self, category: str) -> str:
        return f"({self._category_attribute}={escape_filter_value(category)})"

    async def _search(
        self, ldap_filter: str, attributes: tuple
    ) -> List[Dict[str, Any]]:
        params = {
            "filter": ldap_filter,
            "attributes": ",".join(attributes),
            "size_limit": SEARCH_SIZE_LIMIT,
        }
        try:
            async with self._client() as client:
                r = await client.get("/search", params=params)
                r.raise_for_status()
                return list(r.json().get("entries", []))
        except (httpx.HTTPError, ValueError) as exc:
            raise DirectoryUnavailable(f"search {ldap_filter} failed: {exc}") from exc

    async def _entry(self, dn: str, attributes: tuple) -> Optional[Dict[str, Any]]:
        params = {"dn": dn, "attributes": ",".join(attributes)}
        try:
            async with self._client() as client:
                r = await client.get("/entry", params=params)
                if r.status_code == 404:
                    return None
                r.raise_for_status()
                return r.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DirectoryUnavailable(f"read {dn} failed: {exc}") from exc

    async def is_reachable(self) -> bool:
        try:
            async with self._client() as client:
                r = await client.get("/health")
                return r.status_code == 200
        except httpx.HTTPError as exc:
            logger.warning("Directory is unreachable: %s", exc)
            return False

    async def fetch_resources_by_category(self, category: str) -> List[DirectoryResource]:
        entries = await self._search(self.category_filter(category), RESOURCE_ATTRIBUTES)
        return [entry_to_resource(e) for e in entries]

    async def fetch_groups_for_user(self, identity: str) -> List[str]:
        try:
            async with self._client() as client:
                r = await client.get(f"/users/{quote(identity, safe='')}/groups")
                if r.status_code == 404:
                    return []
                r.raise_for_status()
                return [str(g) for g in r.json().get("groups", [])]
        except (httpx.HTTPError, ValueError) as exc:
            raise DirectoryUnavailable(f"groups of {identity} failed: {exc}") from exc

    async def fetch_applicant(self, identity: str) -> Optional[Applicant]:
        ldap_filter = f"(sAMAccountName={escape_filter_value(identity)})"
        entries = await self._search(ldap_filter, USER_ATTRIBUTES)
        if not entries:
            return None
        entry = entries[0]
        return Applicant(
            full_name=first_value(entry, "displayName") or identity,
            position=first_value(entry, "description") or "Not specified",
            phone=first_value(entry, "telephoneNumber") or "-",
            tab_number=first_value(entry, "employeeID") or "-",
        )

    async def fetch_owner_email(self, resource_name: str) -> Optional[str]:
        """
        Найти ресурс по имени, взять managedBy и прочитать mail владельца.
        """
        ldap_filter = "(&{}(name={}))".format(
            self.category_filter(self._group_category),
            escape_filter_value(resource_name),
        )
        entries = await self._search(ldap_filter, ("managedBy",))
        if not entries:
            raise ResourceNotFound(resource_name)
        managed_by = first_value(entries[0], "managedBy")
        if not managed_by:
            raise OwnerUnresolvable(f"{resource_name} has no managedBy")
        owner = await self._entry(managed_by, ("mail",))
        if owner is None:
            raise OwnerUnresolvable(f"owner {managed_by} of {resource_name} not found")
        mail = first_value(owner, "mail")
        if not mail:
            raise OwnerUnresolvable(f"owner {managed_by} of {resource_name} has no mail")
        return mail
