import pytest

from conftest import DAYSCHOLAR, HOSTELLER, HOSTELLER_2, LISTED_PRODUCT, auth_headers

HANA = auth_headers(HOSTELLER, "hosteller")
HUGO = auth_headers(HOSTELLER_2, "hosteller")
DEV = auth_headers(DAYSCHOLAR, "dayscholar")


@pytest.mark.asyncio
async def test_send_and_read_conversation(api_client):
	sent = await api_client.post("/chat/messages", json={"receiver_id": DAYSCHOLAR, "content": "On my way?"}, headers=HANA)
	assert sent.status_code == 201
	assert sent.json()["sender_id"] == HOSTELLER

	conversations = await api_client.get("/chat/conversations", headers=DEV)
	items = conversations.json()["items"]
	assert items[0]["peer_id"] == HOSTELLER
	assert items[0]["unread_count"] == 1

	history = await api_client.get(f"/chat/conversations/{HOSTELLER}", headers=DEV)
	assert [m["content"] for m in history.json()["items"]] == ["On my way?"]

	after = await api_client.get("/chat/conversations", headers=DEV)
	assert after.json()["items"][0]["unread_count"] == 0


@pytest.mark.asyncio
async def test_messaging_yourself_is_rejected(api_client):
	response = await api_client.post("/chat/messages", json={"receiver_id": HOSTELLER, "content": "hi me"}, headers=HANA)
	assert response.status_code == 400
	assert response.json()["detail"] == "cannot_message_self"


@pytest.mark.asyncio
async def test_empty_message_is_422(api_client):
	response = await api_client.post("/chat/messages", json={"receiver_id": DAYSCHOLAR, "content": ""}, headers=HANA)
	assert response.status_code == 422


@pytest.mark.asyncio
async def test_product_thread_is_visible_to_seller_only(api_client):
	await api_client.post(
		"/chat/messages",
		json={"receiver_id": HOSTELLER_2, "content": "Is the kettle still there?", "product_id": LISTED_PRODUCT},
		headers=HANA,
	)

	seller_view = await api_client.get(f"/chat/products/{LISTED_PRODUCT}", headers=HUGO)
	assert seller_view.status_code == 200
	assert len(seller_view.json()["items"]) == 1

	buyer_view = await api_client.get(f"/chat/products/{LISTED_PRODUCT}", headers=HANA)
	assert buyer_view.status_code == 403


@pytest.mark.asyncio
async def test_request_thread_for_unknown_request_is_404(api_client):
	response = await api_client.get("/chat/requests/unknown", headers=HANA)
	assert response.status_code == 404
