# tests/functional/db/test_creator_ids.py
import asyncio
import pytest
from typing import Any, Dict, List, Optional
from pytest_mock import MockerFixture

from adminhub.db import crud


class FakeCreatorIdCollection:
    """Answers the highest-creator_id lookup the way a numeric collation sort would."""

    def __init__(self, creator_ids: List[str]):
        self.creator_ids = creator_ids
        self.last_query: Optional[Dict[str, Any]] = None

    async def find_one(self, query, projection=None, sort=None, collation=None):
        self.last_query = {"query": query, "sort": sort, "collation": collation}
        matching = [cid for cid in self.creator_ids if crud.parse_creator_number(cid) is not None]
        if not matching:
            return None
        return {"creator_id": max(matching, key=crud.parse_creator_number)}


class FakeCounterCollection:
    def __init__(self):
        self.seq: Optional[int] = None

    async def update_one(self, query, update, upsert=False):
        floor = update["$max"]["seq"]
        self.seq = floor if self.seq is None else max(self.seq, floor)

    async def find_one_and_update(self, query, update, upsert=False, return_document=None):
        # No await between read and write, so concurrent callers see distinct values
        self.seq = (self.seq or 0) + update["$inc"]["seq"]
        return {"_id": query["_id"], "seq": self.seq}


def install(mocker: MockerFixture, creators: List[str], users: Optional[List[str]] = None) -> Dict[str, Any]:
    collections = {
        crud.CREATOR_COLLECTION: FakeCreatorIdCollection(creators),
        crud.USER_COLLECTION: FakeCreatorIdCollection(users or []),
        crud.COUNTER_COLLECTION: FakeCounterCollection(),
    }
    mocker.patch("adminhub.db.crud._get_collection", side_effect=lambda name: collections.get(name))
    return collections


def test_format_and_parse_creator_id():
    assert crud.format_creator_id(1) == "CA00001"
    assert crud.format_creator_id(123456) == "CA123456"
    assert crud.parse_creator_number("CA00042") == 42
    assert crud.parse_creator_number("XX00042") is None
    assert crud.parse_creator_number(None) is None

async def test_first_creator_id(mocker: MockerFixture):
    install(mocker, creators=[])
    assert await crud.get_next_creator_id() == "CA00001"

async def test_next_after_highest_existing(mocker: MockerFixture):
    collections = install(mocker, creators=["CA00009", "CA00042", "CA00010"])

    assert await crud.get_next_creator_id() == "CA00043"
    lookup = collections[crud.CREATOR_COLLECTION].last_query
    assert lookup["collation"] == crud.NUMERIC_COLLATION
    assert lookup["sort"] == [("creator_id", -1)]

async def test_numeric_not_lexicographic(mocker: MockerFixture):
    install(mocker, creators=["CA99", "CA100"])
    assert await crud.get_next_creator_id() == "CA00101"

async def test_users_collection_is_considered(mocker: MockerFixture):
    install(mocker, creators=["CA00005"], users=["CA00050"])
    assert await crud.get_next_creator_id() == "CA00051"

async def test_sequential_and_concurrent_allocation(mocker: MockerFixture):
    install(mocker, creators=["CA00042"])

    ids = await asyncio.gather(*(crud.get_next_creator_id() for _ in range(5)))

    assert sorted(ids) == ["CA00043", "CA00044", "CA00045", "CA00046", "CA00047"]

async def test_no_database(mocker: MockerFixture):
    mocker.patch("adminhub.db.crud._get_collection", return_value=None)
    with pytest.raises(RuntimeError):
        await crud.get_next_creator_id()
