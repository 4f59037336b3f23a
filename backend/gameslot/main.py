import logging
from typing import Awaitable, Callable

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from .config import get_settings
from .routers import bookings, games, invitations, leaderboard, slots, users
from .utils.request_id import REQUEST_ID_HEADER, generate_request_id, reset_request_id, set_request_id

logging.basicConfig(level=getattr(logging, get_settings().log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Game Slot Booking API")


async def request_id_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
    token = set_request_id(request_id)
    try:
        response = await call_next(request)
    finally:
        reset_request_id(token)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"detail": {"error_code": "internal_error", "message": "Internal server error"}},
    )


app.middleware("http")(request_id_middleware)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


app.include_router(games.router)
app.include_router(slots.router)
app.include_router(bookings.router)
app.include_router(invitations.router)
app.include_router(leaderboard.router)
app.include_router(users.router)
