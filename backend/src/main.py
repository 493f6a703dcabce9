from __future__ import annotations

import asyncio

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from loguru import logger

from config import Configuration
from services.matchmaking import run_matchmaking
from services.report import build_error_response, build_response
from services.store import StoreError, build_store

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]
ALREADY_RUNNING_MESSAGE = "A mystery dinner run is already in progress"


app = FastAPI(title="Mystery Dinner Matchmaking")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=CORS_ALLOW_HEADERS,
)

# Guards overlapping runs inside this process only; separate workers or
# hosts can still run concurrently.
_run_lock = asyncio.Lock()


def get_config() -> Configuration:
    return Configuration.from_env()


@app.get("/healthz")
def healthz(cfg: Configuration = Depends(get_config)) -> dict:
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok"}


@app.options("/mystery-dinner")
def mystery_dinner_preflight() -> Response:
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
        },
    )


@app.api_route("/mystery-dinner", methods=["GET", "POST"])
async def mystery_dinner(cfg: Configuration = Depends(get_config)) -> JSONResponse:
    if _run_lock.locked():
        logger.warning("mystery dinner run requested while another is running, skipping")
        return JSONResponse({"success": True, "message": ALREADY_RUNNING_MESSAGE})

    async with _run_lock:
        try:
            store = build_store(cfg)
            try:
                report = await run_matchmaking(store, cfg)
            finally:
                store.close()
        except (ValueError, StoreError) as exc:
            logger.error("mystery dinner run failed: {}", exc)
            return JSONResponse(build_error_response(str(exc)), status_code=500)
        except Exception as exc:
            logger.exception("mystery dinner run crashed: {}", exc)
            return JSONResponse(build_error_response(str(exc)), status_code=500)

    return JSONResponse(build_response(report))


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
