import uuid

import pytest
import pytest_asyncio
from httpx import AsyncClient

from tests.helpers import login_and_verify

pytestmark = pytest.mark.integration

BACKUPS = "/api/v1/admin/system/backups"


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, admin_user, outbox) -> AsyncClient:
    await login_and_verify(client, outbox)
    return client


@pytest.mark.asyncio
async def test_backups_require_admin_session(client: AsyncClient):
    for method, path in (
        ("POST", BACKUPS),
        ("GET", f"{BACKUPS}/latest"),
        ("GET", f"{BACKUPS}/{uuid.uuid4()}"),
        ("POST", f"{BACKUPS}/{uuid.uuid4()}/cancel"),
        ("GET", f"{BACKUPS}/{uuid.uuid4()}/download"),
    ):
        resp = await client.request(method, path)
        assert resp.status_code == 401, (method, path)
        assert resp.json()["error"]["code"] == "E002"


@pytest.mark.asyncio
async def test_backup_lifecycle_and_download(authed_client: AsyncClient, clock, admin_user):
    resp = await authed_client.post(BACKUPS, json={})
    assert resp.status_code == 202, resp.text
    job = resp.json()["backup"]
    assert job["status"] == "running"
    assert job["progress"] == 1
    assert job["stage"] == "Preparing backup snapshot"
    assert job["has_download"] is False

    clock.advance(seconds=6)
    resp = await authed_client.get(f"{BACKUPS}/{job['id']}")
    assert resp.status_code == 200
    assert resp.json()["backup"]["progress"] == 25
    assert resp.json()["backup"]["stage"] == "Exporting database collections"

    clock.advance(seconds=18)
    resp = await authed_client.get(f"{BACKUPS}/latest")
    done = resp.json()["backup"]
    assert done["id"] == job["id"]
    assert done["status"] == "success"
    assert done["progress"] == 100
    assert done["has_download"] is True
    assert done["file_name"].startswith("backup_production_")

    resp = await authed_client.get(f"{BACKUPS}/{job['id']}/download")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/sql")
    assert done["file_name"] in resp.headers["content-disposition"]
    assert f"-- backup_job_id: {job['id']}" in resp.text


@pytest.mark.asyncio
async def test_start_without_body(authed_client: AsyncClient):
    resp = await authed_client.post(BACKUPS)
    assert resp.status_code == 202
    assert resp.json()["backup"]["status"] == "running"


@pytest.mark.asyncio
async def test_concurrent_start_conflicts(authed_client: AsyncClient):
    assert (await authed_client.post(BACKUPS, json={})).status_code == 202

    resp = await authed_client.post(BACKUPS, json={})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "E008"
    assert resp.json()["error"]["message"] == "A backup process is already running."


@pytest.mark.asyncio
async def test_simulated_failure(authed_client: AsyncClient, clock):
    resp = await authed_client.post(BACKUPS, json={"simulate_failure": True})
    job_id = resp.json()["backup"]["id"]

    clock.advance(seconds=25)
    resp = await authed_client.get(f"{BACKUPS}/{job_id}")
    job = resp.json()["backup"]
    assert job["status"] == "failed"
    assert job["error_code"] == "ERR_STORAGE_TIMEOUT_0x442"
    assert job["error_message"] == "Connection to storage bucket timed out."
    assert job["has_download"] is False

    resp = await authed_client.get(f"{BACKUPS}/{job_id}/download")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_cancel_running_backup(authed_client: AsyncClient, clock):
    job_id = (await authed_client.post(BACKUPS, json={})).json()["backup"]["id"]
    clock.advance(seconds=2)

    resp = await authed_client.post(f"{BACKUPS}/{job_id}/cancel")
    assert resp.status_code == 200
    assert resp.json()["backup"]["status"] == "canceled"
    assert resp.json()["backup"]["stage"] == "Backup canceled"

    resp = await authed_client.post(f"{BACKUPS}/{job_id}/cancel")
    assert resp.status_code == 400
    assert resp.json()["error"]["message"] == "Only running backups can be canceled."

    # A canceled job frees the slot for a new one.
    assert (await authed_client.post(BACKUPS, json={})).status_code == 202


@pytest.mark.asyncio
async def test_latest_is_null_without_jobs(authed_client: AsyncClient):
    resp = await authed_client.get(f"{BACKUPS}/latest")
    assert resp.status_code == 200
    assert resp.json() == {"backup": None}


@pytest.mark.asyncio
async def test_unknown_backup_is_not_found(authed_client: AsyncClient):
    for path in (f"{BACKUPS}/{uuid.uuid4()}", f"{BACKUPS}/not-a-uuid", f"{BACKUPS}/{uuid.uuid4()}/download"):
        resp = await authed_client.get(path)
        assert resp.status_code == 404, path
        assert resp.json()["error"]["code"] == "E001"
