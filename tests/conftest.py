import asyncio
from typing import Dict, List, Optional

import pytest
from fastapi import FastAPI, HTTPException

from access_manager.app.entities import Applicant, DirectoryResource
from access_manager.app.errors import DirectoryUnavailable, DispatchFailure, ResourceNotFound


class FakeDirectory:
    """Каталог в памяти с теми же методами, что и HttpDirectoryClient."""

    def __init__(
        self,
        resources: Optional[Dict[str, List[DirectoryResource]]] = None,
        user_groups: Optional[Dict[str, List[str]]] = None,
        owners: Optional[Dict[str, object]] = None,
        applicants: Optional[Dict[str, Applicant]] = None,
        delays: Optional[Dict[str, float]] = None,
        reachable: bool = True,
        failing: bool = False,
    ):
        self.resources = resources or {}
        self.user_groups = user_groups or {}
        self.owners = owners or {}
        self.applicants = applicants or {}
        self.delays = delays or {}
        self.reachable = reachable
        self.failing = failing
        self.owner_calls: List[str] = []
        self.catalog_calls: List[str] = []

    async def is_reachable(self) -> bool:
        return self.reachable

    async def fetch_resources_by_category(self, category: str) -> List[DirectoryResource]:
        self.catalog_calls.append(category)
        if self.failing:
            raise DirectoryUnavailable("connection refused")
        return list(self.resources.get(category, []))

    async def fetch_groups_for_user(self, identity: str) -> List[str]:
        if self.failing:
            raise DirectoryUnavailable("connection refused")
        return list(self.user_groups.get(identity, []))

    async def fetch_applicant(self, identity: str) -> Optional[Applicant]:
        return self.applicants.get(identity)

    async def fetch_owner_email(self, resource_name: str) -> Optional[str]:
        self.owner_calls.append(resource_name)
        if resource_name in self.delays:
            await asyncio.sleep(self.delays[resource_name])
        if resource_name not in self.owners:
            raise ResourceNotFound(resource_name)
        value = self.owners[resource_name]
        if isinstance(value, Exception):
            raise value
        return value


class RecordingDispatcher:
    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.fail = fail
        self.delay = delay
        self.sent = []

    async def send(self, recipients, subject, body) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DispatchFailure("mail server rejected the message")
        self.sent.append((set(recipients), subject, body))


def make_gateway(
    searches: Dict[str, List[dict]],
    entries: Optional[Dict[str, dict]] = None,
    groups: Optional[Dict[str, List[str]]] = None,
    healthy: bool = True,
) -> FastAPI:
    """Шлюз каталога для тестов: ответы на заранее известные LDAP-фильтры."""
    gw = FastAPI()
    gw.state.filters = []

    @gw.get("/health")
    async def health():
        if not healthy:
            raise HTTPException(status_code=503, detail="down")
        return {"status": "ok"}

    @gw.get("/search")
    async def search(filter: str, attributes: str = "", size_limit: int = 500):
        gw.state.filters.append(filter)
        return {"entries": searches.get(filter, [])[:size_limit]}

    @gw.get("/entry")
    async def entry(dn: str, attributes: str = ""):
        if not entries or dn not in entries:
            raise HTTPException(status_code=404, detail="No such object")
        return entries[dn]

    @gw.get("/users/{identity}/groups")
    async def user_groups(identity: str):
        if not groups or identity not in groups:
            raise HTTPException(status_code=404, detail="No such user")
        return {"groups": groups[identity]}

    return gw


@pytest.fixture
def group_a() -> DirectoryResource:
    return DirectoryResource(name="GroupA", description="Finance", distinguished_name="CN=GroupA,OU=Groups,DC=corp,DC=local")


@pytest.fixture
def group_b() -> DirectoryResource:
    return DirectoryResource(name="GroupB", description="IT", distinguished_name="CN=GroupB,OU=Groups,DC=corp,DC=local")


@pytest.fixture
def applicant() -> Applicant:
    return Applicant(full_name="Ivan Petrov", tab_number="1042", position="Accountant", phone="+7 495 000-00-00")
