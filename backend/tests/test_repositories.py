"""Tests for the file-based saved-city store."""

import json

import pytest

from domain.models import CityCreate
from infrastructure.repositories import FileCityRepository


@pytest.fixture
def repo(tmp_path):
    return FileCityRepository(data_dir=str(tmp_path / "cities"))


def ranchi():
    return CityCreate(name="Ranchi", state="Jharkhand", country="IN", lat=23.3441, lon=85.3096)


@pytest.mark.asyncio
async def test_add_and_list(repo):
    saved = await repo.add_city("u1", ranchi())

    cities = await repo.list_cities("u1")

    assert [c.id for c in cities] == [saved.id]
    assert cities[0].user_id == "u1"
    assert cities[0].lat == 23.3441


@pytest.mark.asyncio
async def test_list_keeps_insertion_order(repo):
    first = await repo.add_city("u1", ranchi())
    second = await repo.add_city("u1", CityCreate(name="Paris", country="FR", lat=48.85, lon=2.35))

    assert [c.id for c in await repo.list_cities("u1")] == [first.id, second.id]


@pytest.mark.asyncio
async def test_users_are_isolated(repo):
    saved = await repo.add_city("u1", ranchi())

    assert await repo.list_cities("u2") == []
    assert await repo.get_city("u2", saved.id) is None
    assert await repo.delete_city("u2", saved.id) is False


@pytest.mark.asyncio
async def test_get_city(repo):
    saved = await repo.add_city("u1", ranchi())

    assert (await repo.get_city("u1", saved.id)).name == "Ranchi"
    assert await repo.get_city("u1", "missing") is None


@pytest.mark.asyncio
async def test_delete_city(repo):
    saved = await repo.add_city("u1", ranchi())

    assert await repo.delete_city("u1", saved.id) is True
    assert await repo.delete_city("u1", saved.id) is False
    assert await repo.list_cities("u1") == []


@pytest.mark.asyncio
async def test_documents_use_wire_field_names(repo, tmp_path):
    await repo.add_city("u1", ranchi())

    document = json.loads(repo._get_user_path("u1").read_text(encoding="utf-8"))

    assert document[0]["userId"] == "u1"
    assert "createdAt" in document[0]


@pytest.mark.asyncio
async def test_unsafe_user_ids_stay_inside_data_dir(repo, tmp_path):
    await repo.add_city("../../etc/passwd", ranchi())

    files = list((tmp_path / "cities").iterdir())

    assert len(files) == 1
    assert files[0].parent == tmp_path / "cities"
    assert len(await repo.list_cities("../../etc/passwd")) == 1


@pytest.mark.asyncio
async def test_similar_user_ids_do_not_share_a_document(repo, tmp_path):
    """Ids that differ only in punctuation map to different files"""
    await repo.add_city("alice@example.com", ranchi())

    assert await repo.list_cities("alice_example.com") == []
    assert await repo.list_cities("alice.example.com") == []
    assert len(list((tmp_path / "cities").iterdir())) == 1
    assert [c.user_id for c in await repo.list_cities("alice@example.com")] == ["alice@example.com"]


@pytest.mark.asyncio
async def test_data_survives_new_instance(repo, tmp_path):
    saved = await repo.add_city("u1", ranchi())

    reopened = FileCityRepository(data_dir=str(tmp_path / "cities"))

    assert (await reopened.get_city("u1", saved.id)).id == saved.id
