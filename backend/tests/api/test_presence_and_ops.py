import pytest

from conftest import DAYSCHOLAR, HOSTELLER, auth_headers


@pytest.mark.asyncio
async def test_presence_status_batch(api_client, app):
	await app.state.registry.register(DAYSCHOLAR, "sid-dev")

	response = await api_client.get(
		"/presence/status",
		params={"user_ids": f"{DAYSCHOLAR},{HOSTELLER}"},
		headers=auth_headers(HOSTELLER, "hosteller"),
	)

	assert response.status_code == 200
	assert response.json() == {"statuses": {DAYSCHOLAR: True, HOSTELLER: False}}


@pytest.mark.asyncio
async def test_liveness_and_readiness(api_client):
	live = await api_client.get("/health/live")
	assert live.json() == {"status": "ok"}

	ready = await api_client.get("/health/ready")
	assert ready.status_code == 200
	assert ready.json()["checks"]["postgres"]["backend"] == "memory"


@pytest.mark.asyncio
async def test_metrics_exposes_request_counters(api_client):
	await api_client.get("/health/live")
	response = await api_client.get("/metrics")
	assert response.status_code == 200
	assert "errands_" in response.text


@pytest.mark.asyncio
async def test_responses_carry_request_id(api_client):
	response = await api_client.get("/health/live", headers={"X-Request-Id": "req-abc"})
	assert response.headers["X-Request-Id"] == "req-abc"
