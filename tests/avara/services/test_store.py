import pytest
from avara.core.exceptions import ConflictError
from avara.services.store import DocumentStore


@pytest.fixture
def store(fake_db):
    return DocumentStore(fake_db, "research_docs")


def test_upsert_creates_then_updates_with_monotonic_version(store):
    first = store.upsert("u1", "p1", {"name": "Acme"}, on_insert={"status": "draft", "name": "ignored"})
    assert first["version"] == 1
    assert first["status"] == "draft"
    assert first["name"] == "Acme"
    assert "_id" not in first

    second = store.upsert("u1", "p1", {"industry": "EdTech"}, on_insert={"status": "overwritten?"})
    assert second["version"] == 2
    assert second["status"] == "draft"
    assert second["createdAt"] == first["createdAt"]


def test_upsert_unsets_fields(store):
    store.upsert("u1", "p1", {"draft": {"step": 2}})
    doc = store.upsert("u1", "p1", {"state": "research"}, unset=["draft"])
    assert "draft" not in doc


def test_save_rejects_stale_versions(store):
    store.upsert("u1", "p1", {"summary": {"nextStep": "a"}})
    reader_a = store.get("u1", "p1")
    reader_b = store.get("u1", "p1")

    reader_a["summary"]["nextStep"] = "from a"
    saved = store.save(reader_a)
    assert saved["version"] == 2

    reader_b["summary"]["nextStep"] = "from b"
    with pytest.raises(ConflictError):
        store.save(reader_b)
    assert store.get("u1", "p1")["summary"]["nextStep"] == "from a"


def test_save_honours_extra_conditions(store):
    store.upsert("u1", "p1", {"core": {"solutionJob": {"id": "job_1", "status": "pending"}}})
    doc = store.get("u1", "p1")
    with pytest.raises(ConflictError):
        store.save(doc, conditions={"core.solutionJob.id": "job_2"})


def test_update_fields_supports_dotted_paths(store):
    store.upsert("u1", "p1", {"core": {"solutionJob": {"id": "job_1", "status": "pending"}}})
    assert store.update_fields("u1", "p1", {"core.solutionJob.status": "failed"}, conditions={"core.solutionJob.id": "job_1"})
    assert store.get("u1", "p1")["core"]["solutionJob"] == {"id": "job_1", "status": "failed"}
    assert not store.update_fields("u1", "missing", {"status": "x"})


def test_list_for_user_scopes_by_user(store):
    store.upsert("u1", "p1", {"name": "one"})
    store.upsert("u1", "p2", {"name": "two"})
    store.upsert("u2", "p3", {"name": "other"})
    assert {doc["projectId"] for doc in store.list_for_user("u1")} == {"p1", "p2"}


def test_ensure_indexes_creates_unique_key(store, fake_db):
    store.ensure_indexes()
    created = fake_db.get_collection("research_docs").created_indexes
    assert created[0]["unique"] is True
