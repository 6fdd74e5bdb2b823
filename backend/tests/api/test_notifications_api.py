from datetime import datetime, timedelta, timezone

import pytest

from conftest import DAYSCHOLAR, HOSTELLER, auth_headers

HANA = auth_headers(HOSTELLER, "hosteller")
DEV = auth_headers(DAYSCHOLAR, "dayscholar")


async def _post_request(api_client, item_name: str) -> str:
	response = await api_client.post(
		"/requests",
		json={
			"item_name": item_name,
			"expected_price": "15",
			"deadline": (datetime.now(timezone.utc) + timedelta(hours=1)).isoformat(),
			"delivery_location": "Hostel C",
		},
		headers=HANA,
	)
	return response.json()["id"]


@pytest.mark.asyncio
async def test_new_request_reaches_dayscholar_inbox(api_client):
	request_id = await _post_request(api_client, "Batteries")

	inbox = await api_client.get("/notifications", headers=DEV)
	assert inbox.status_code == 200
	body = inbox.json()
	assert body["unread_count"] == 1
	assert body["items"][0]["title"] == "New Item Request"
	assert body["items"][0]["related_id"] == request_id

	count = await api_client.get("/notifications/unread-count", headers=DEV)
	assert count.json() == {"unread_count": 1}


@pytest.mark.asyncio
async def test_mark_read_mark_all_and_delete(api_client):
	await _post_request(api_client, "Glue")
	await _post_request(api_client, "Tape")
	items = (await api_client.get("/notifications", headers=DEV)).json()["items"]

	read = await api_client.put(f"/notifications/{items[0]['id']}/read", headers=DEV)
	assert read.status_code == 200
	assert read.json()["is_read"] is True

	all_read = await api_client.put("/notifications/read-all", headers=DEV)
	assert all_read.json() == {"updated": 1}

	deleted = await api_client.delete(f"/notifications/{items[1]['id']}", headers=DEV)
	assert deleted.status_code == 204
	remaining = (await api_client.get("/notifications", headers=DEV)).json()["items"]
	assert [n["id"] for n in remaining] == [items[0]["id"]]


@pytest.mark.asyncio
async def test_other_users_notifications_are_forbidden(api_client):
	await _post_request(api_client, "Pencils")
	item = (await api_client.get("/notifications", headers=DEV)).json()["items"][0]

	response = await api_client.put(f"/notifications/{item['id']}/read", headers=HANA)
	assert response.status_code == 403
	missing = await api_client.delete("/notifications/missing", headers=DEV)
	assert missing.status_code == 404
