import pytest
from fastapi import FastAPI
from gameslot.main import request_id_middleware, unhandled_exception_handler
from gameslot.utils.request_id import (
    REQUEST_ID_HEADER,
    generate_request_id,
    get_request_id,
    reset_request_id,
    set_request_id,
)
from httpx import ASGITransport, AsyncClient


def _echo_app() -> FastAPI:
    app = FastAPI()

    @app.get("/echo")
    async def echo() -> dict[str, str]:
        return {"rid": get_request_id() or ""}

    @app.get("/boom")
    async def boom() -> dict[str, str]:
        raise LookupError("unexpected")

    app.middleware("http")(request_id_middleware)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    return app


def test_reset_restores_previous_value() -> None:
    outer = set_request_id("outer")
    inner = set_request_id("inner")
    assert get_request_id() == "inner"

    reset_request_id(inner)
    assert get_request_id() == "outer"
    reset_request_id(outer)


def test_generated_ids_are_unique() -> None:
    ids = {generate_request_id() for _ in range(5)}
    assert len(ids) == 5
    assert all(ids)


@pytest.mark.asyncio
async def test_middleware_generates_id_when_missing() -> None:
    transport = ASGITransport(app=_echo_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/echo")

    assert resp.status_code == 200
    assert resp.headers[REQUEST_ID_HEADER]
    assert resp.json()["rid"] == resp.headers[REQUEST_ID_HEADER]


@pytest.mark.asyncio
async def test_middleware_propagates_incoming_id() -> None:
    transport = ASGITransport(app=_echo_app())
    async with AsyncClient(
        transport=transport, base_url="http://test", headers={REQUEST_ID_HEADER: "rid-from-gateway"}
    ) as client:
        resp = await client.get("/echo")

    assert resp.headers[REQUEST_ID_HEADER] == "rid-from-gateway"
    assert resp.json()["rid"] == "rid-from-gateway"


@pytest.mark.asyncio
async def test_unhandled_errors_become_internal_error_json() -> None:
    transport = ASGITransport(app=_echo_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/boom")

    assert resp.status_code == 500
    assert resp.json()["detail"]["error_code"] == "internal_error"
