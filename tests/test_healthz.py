async def test_health_check_success(async_client):
    """Test health check endpoint returns correct format."""
    response = await async_client.get("/v1/healthz")

    assert response.status_code == 200

    data = response.json()
    assert data["ok"] is True
    assert "data" in data

    health_data = data["data"]
    assert health_data["ok"] is True
    assert health_data["version"] == "1.0.0"
    assert health_data["environment"] == "development"
    assert health_data["database"]["connected"] is True


async def test_health_check_reports_queue_depth(async_client):
    await async_client.post(
        "/v1/queue/items",
        json={"work_type": "store-alert", "payload": {"phone": "1"}, "max_attempts": 3},
    )
    await async_client.post(
        "/v1/jobs",
        json={"work_type": "marketing-image", "payload": {"prompt": "x"}, "max_attempts": 1},
    )

    response = await async_client.get("/v1/healthz")

    assert response.json()["data"]["queue"] == {
        "queue_depth": 1,
        "stale_claims": 0,
        "job_queue_depth": 1,
        "stale_job_claims": 0,
    }


async def test_health_check_response_structure(async_client):
    """Test health check response envelope structure."""
    response = await async_client.get("/v1/healthz")

    data = response.json()

    # Check response envelope structure
    required_keys = ["ok", "data", "message", "request_id"]
    for key in required_keys:
        assert key in data

    # Check that request ID is present in headers
    assert "X-Request-ID" in response.headers


async def test_request_id_is_propagated(async_client):
    response = await async_client.get("/v1/healthz", headers={"X-Request-ID": "sched-run-7"})

    assert response.headers["X-Request-ID"] == "sched-run-7"
