"""Tests for the in-memory repository."""

import pytest

from restguard import InMemoryRepository, ResourceAlreadyExistsError, ResourceNotFoundError
from restguard.repository import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT

pytestmark = pytest.mark.anyio


@pytest.fixture
def repo():
    return InMemoryRepository("user", unique_fields=["email"])


class TestInMemoryRepository:

    async def test_create_assigns_id(self, repo):
        user = await repo.create({"email": "a@example.com"})
        assert user["id"]
        assert await repo.find(user["id"]) == user

    async def test_find_missing(self, repo):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            await repo.find("nope")
        assert exc_info.value.status_code == 404

    async def test_unique_field_conflict(self, repo):
        await repo.create({"email": "a@example.com"})
        with pytest.raises(ResourceAlreadyExistsError):
            await repo.create({"email": "a@example.com"})

    async def test_id_conflict(self, repo):
        await repo.create({"id": "1", "email": "a@example.com"})
        with pytest.raises(ResourceAlreadyExistsError):
            await repo.create({"id": "1", "email": "b@example.com"})

    async def test_stored_entities_are_copies(self, repo):
        data = {"id": "1", "email": "a@example.com", "tags": ["x"]}
        created = await repo.create(data)
        data["tags"].append("y")
        created["tags"].append("z")
        assert (await repo.find("1"))["tags"] == ["x"]

    async def test_list_filter(self, repo):
        await repo.create({"email": "a@example.com", "role": "admin"})
        await repo.create({"email": "b@example.com", "role": "user"})
        admins = await repo.list({"role": "admin"})
        assert [u["email"] for u in admins] == ["a@example.com"]

    async def test_list_pagination(self, repo):
        for i in range(150):
            await repo.create({"email": f"{i}@example.com"})

        assert len(await repo.list()) == DEFAULT_PAGE_LIMIT
        assert len(await repo.list(limit=1000)) == MAX_PAGE_LIMIT
        page = await repo.list(limit=10, offset=145)
        assert [u["email"] for u in page] == [f"{i}@example.com" for i in range(145, 150)]

    async def test_find_by(self, repo):
        await repo.create({"email": "a@example.com"})
        assert (await repo.find_by("email", "a@example.com"))["email"] == "a@example.com"
        assert await repo.find_by("email", "missing@example.com") is None
