import asyncio
import time

import pytest

from conftest import FakeDirectory
from access_manager.app.errors import DirectoryUnavailable, OwnerUnresolvable
from access_manager.app.owners import OwnerResolver


@pytest.mark.asyncio
async def test_resolve_owner_found():
    resolver = OwnerResolver(FakeDirectory(owners={"GroupA": "alice@x.com"}))
    assert await resolver.resolve_owner("GroupA") == "alice@x.com"


@pytest.mark.asyncio
async def test_failures_mean_no_owner():
    directory = FakeDirectory(
        owners={
            "NoManager": OwnerUnresolvable("NoManager has no managedBy"),
            "Offline": DirectoryUnavailable("timeout"),
            "Broken": RuntimeError("malformed entry"),
            "Blank": "",
        }
    )
    resolver = OwnerResolver(directory)
    for name in ("Missing", "NoManager", "Offline", "Broken", "Blank"):
        assert await resolver.resolve_owner(name) is None
    assert await resolver.resolve_owner("") is None
    assert "" not in directory.owner_calls


@pytest.mark.asyncio
async def test_owner_is_looked_up_every_time():
    directory = FakeDirectory(owners={"GroupA": "alice@x.com"})
    resolver = OwnerResolver(directory)
    await resolver.resolve_owner("GroupA")
    directory.owners["GroupA"] = "carol@x.com"
    assert await resolver.resolve_owner("GroupA") == "carol@x.com"
    assert directory.owner_calls == ["GroupA", "GroupA"]


@pytest.mark.asyncio
async def test_slow_lookup_times_out_individually():
    directory = FakeDirectory(
        owners={"Slow": "slow@x.com", "Fast": "fast@x.com"},
        delays={"Slow": 5.0, "Fast": 0.01},
    )
    resolver = OwnerResolver(directory, timeout=0.2)
    started = time.monotonic()
    owners = await resolver.resolve_many(["Slow", "Fast"])
    assert owners == {"Slow": None, "Fast": "fast@x.com"}
    assert time.monotonic() - started < 2.0


@pytest.mark.asyncio
async def test_resolve_many_runs_concurrently():
    names = [f"G{i}" for i in range(5)]
    directory = FakeDirectory(
        owners={n: f"{n.lower()}@x.com" for n in names},
        delays={n: 0.2 for n in names},
    )
    started = time.monotonic()
    owners = await OwnerResolver(directory, timeout=1.0).resolve_many(names)
    assert list(owners) == names
    assert time.monotonic() - started < 0.9
