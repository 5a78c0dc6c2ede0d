from __future__ import annotations

import asyncio
import threading

import pytest

from persistence.errors import AuthorizationError, ConflictError, ValidationError
from persistence.projects import StoreProjectRepository
from persistence.repositories import AsyncProjectRepository, AsyncUserRepository
from persistence.users import DEFAULT_PROFILE_PIC, StoreUserRepository


def test_user_lifecycle_scenario(store):
    users = StoreUserRepository(store)

    user = users.register(name="Ada", email="a@x.com", password="secret1")
    assert user.id
    assert user.createdAt
    assert user.password != "secret1"
    assert user.profilePic == DEFAULT_PROFILE_PIC
    assert user.bio == ""

    updated = users.update_details(user.id, bio="hi")
    assert updated is not None
    assert updated.bio == "hi"
    assert updated.name == "Ada"
    assert updated.createdAt == user.createdAt

    assert store.remove("users", user.id) is True
    assert users.get(user.id) is None


def test_register_rejects_duplicate_email(store):
    users = StoreUserRepository(store)
    users.register(name="Ada", email="Ada@Example.com", password="secret1")

    with pytest.raises(ConflictError):
        users.register(name="Other", email=" ada@example.com ", password="secret2")
    assert len(store.find("users")) == 1


def test_register_requires_email_and_password(store):
    users = StoreUserRepository(store)
    with pytest.raises(ValidationError):
        users.register(name="Ada", email="", password="secret1")
    with pytest.raises(ValidationError):
        users.register(name="Ada", email="a@x.com", password="")


def test_authenticate_and_change_password(store):
    users = StoreUserRepository(store)
    user = users.register(name="Ada", email="a@x.com", password="secret1")

    assert users.authenticate("A@X.com", "secret1").id == user.id
    assert users.authenticate("a@x.com", "wrong") is None
    assert users.authenticate("nobody@x.com", "secret1") is None

    with pytest.raises(AuthorizationError):
        users.change_password(user.id, "wrong", "secret2")

    users.change_password(user.id, "secret1", "secret2")
    assert users.authenticate("a@x.com", "secret1") is None
    assert users.authenticate("a@x.com", "secret2") is not None


def test_set_profile_pic_reports_previous_non_default(store):
    users = StoreUserRepository(store)
    user = users.register(name="Ada", email="a@x.com", password="secret1")

    updated, previous = users.set_profile_pic(user.id, "/uploads/u/profiles/one.png")
    assert updated.profilePic == "/uploads/u/profiles/one.png"
    assert previous is None

    _, previous = users.set_profile_pic(user.id, "/uploads/u/profiles/two.png")
    assert previous == "/uploads/u/profiles/one.png"


def test_project_defaults_and_tag_decoding(store):
    projects = StoreProjectRepository(store)

    p1 = projects.create("u1", title="First")
    assert p1.status == "draft"
    assert p1.tags == []
    assert p1.user == "u1"

    p2 = projects.create("u1", title="Second", tags='["ml", "demo"]', status="live", framework="skl")
    assert p2.tags == ["ml", "demo"]
    assert p2.status == "live"
    assert p2.to_doc()["framework"] == "skl"

    with pytest.raises(ValidationError):
        projects.create("u1", title="Bad", tags="{not json")
    with pytest.raises(ValidationError):
        projects.create("u1", title="Bad", tags='{"a": 1}')


def test_project_owner_cannot_be_spoofed(store):
    projects = StoreProjectRepository(store)
    p = projects.create("u1", title="Mine", user="u2", id="fixed")
    assert p.user == "u1"
    assert p.id != "fixed"

    updated = projects.update_owned(p.id, "u1", {"user": "u2", "title": "Still mine"})
    assert updated.user == "u1"
    assert updated.title == "Still mine"


def test_project_ownership_checks(store):
    projects = StoreProjectRepository(store)
    p = projects.create("u1", title="Mine")

    assert projects.get_owned("missing", "u1") is None
    with pytest.raises(AuthorizationError):
        projects.get_owned(p.id, "u2")
    with pytest.raises(AuthorizationError):
        projects.update_owned(p.id, "u2", {"title": "Stolen"})
    with pytest.raises(AuthorizationError):
        projects.delete_owned(p.id, "u2")

    assert projects.get_owned(p.id, "u1").title == "Mine"
    removed = projects.delete_owned(p.id, "u1")
    assert removed.id == p.id
    assert projects.get_owned(p.id, "u1") is None


def test_project_listing_filters_and_orders(store):
    projects = StoreProjectRepository(store)
    a = projects.create("u1", title="a", tags=["x"])
    b = projects.create("u1", title="b", status="live")
    projects.create("u2", title="other")

    newest_first = projects.list_for_owner("u1")
    assert {p.id for p in newest_first} == {a.id, b.id}
    assert newest_first[0].createdAt >= newest_first[1].createdAt
    assert [p.id for p in projects.list_for_owner("u1", sort="title", order="asc")] == [a.id, b.id]
    assert [p.id for p in projects.list_for_owner("u1", status="live")] == [b.id]
    assert [p.id for p in projects.list_for_owner("u1", tag="x")] == [a.id]

    with pytest.raises(ValidationError):
        projects.list_for_owner("u1", sort="password")


def test_attach_zip_returns_previous_path(store):
    projects = StoreProjectRepository(store)
    p = projects.create("u1", title="Mine")

    updated, previous = projects.attach_zip(p.id, "u1", "/uploads/u1/p/one.zip")
    assert updated.zipFilePath == "/uploads/u1/p/one.zip"
    assert previous is None

    _, previous = projects.attach_zip(p.id, "u1", "/uploads/u1/p/two.zip")
    assert previous == "/uploads/u1/p/one.zip"


def test_async_repositories_basic_flow(store):
    async def _run():
        users = AsyncUserRepository(store)
        projects = AsyncProjectRepository(store)

        user = await users.register(name="Ada", email="a@x.com", password="secret1")
        assert (await users.find_by_email("a@x.com")).id == user.id

        created = await asyncio.gather(*(projects.create(user.id, title=f"p{i}") for i in range(5)))
        listed = await projects.list_for_owner(user.id)
        assert {p.id for p in listed} == {p.id for p in created}

        await asyncio.gather(
            projects.update_owned(created[0].id, user.id, {"title": "renamed"}),
            projects.update_owned(created[0].id, user.id, {"description": "desc"}),
        )
        final = await projects.get_owned(created[0].id, user.id)
        assert final.title == "renamed"
        assert final.description == "desc"

    asyncio.run(_run())


def test_concurrent_registration_of_same_email_admits_one(store):
    async def _run():
        users = AsyncUserRepository(store)
        results = await asyncio.gather(
            *(users.register(name="Ada", email="a@x.com", password="secret1") for _ in range(4)),
            return_exceptions=True,
        )
        ok = [r for r in results if not isinstance(r, BaseException)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        assert len(ok) == 1
        assert len(conflicts) == 3

    asyncio.run(_run())


def test_concurrent_attach_zip_reports_each_replaced_path_once(store):
    projects = StoreProjectRepository(store)
    p = projects.create("u1", title="Mine")
    projects.attach_zip(p.id, "u1", "/uploads/u1/p/old.zip")

    n = 8
    new_paths = [f"/uploads/u1/p/new{i}.zip" for i in range(n)]
    barrier = threading.Barrier(n)
    replaced: list[str | None] = []
    errors: list[BaseException] = []

    def worker(path: str) -> None:
        try:
            barrier.wait()
            _, previous = projects.attach_zip(p.id, "u1", path)
            replaced.append(previous)
        except BaseException as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(path,)) for path in new_paths]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    final = projects.get_owned(p.id, "u1").zipFilePath
    assert final in new_paths
    # every stored path is handed back exactly once, except the one still stored
    assert len(replaced) == n
    assert len(set(replaced)) == n
    assert set(replaced) == {"/uploads/u1/p/old.zip", *new_paths} - {final}


def test_concurrent_profile_pic_changes_report_each_replaced_path_once(store):
    users = StoreUserRepository(store)
    user = users.register(name="Ada", email="a@x.com", password="secret1")
    users.set_profile_pic(user.id, "/uploads/u/profiles/old.png")

    n = 8
    new_paths = [f"/uploads/u/profiles/new{i}.png" for i in range(n)]
    barrier = threading.Barrier(n)
    replaced: list[str | None] = []
    errors: list[BaseException] = []

    def worker(path: str) -> None:
        try:
            barrier.wait()
            _, previous = users.set_profile_pic(user.id, path)
            replaced.append(previous)
        except BaseException as e:  # surfaced below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(path,)) for path in new_paths]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    final = users.get(user.id).profilePic
    assert final in new_paths
    assert len(set(replaced)) == n
    assert set(replaced) == {"/uploads/u/profiles/old.png", *new_paths} - {final}
