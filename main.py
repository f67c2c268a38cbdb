import asyncio
import sys

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from finbox.api.routes import router
from finbox.config import get_settings

# Configure loguru
logger.remove()
logger.add(sys.stderr, level="INFO", format="{time:HH:mm:ss} | {level:<7} | {message}")

app = FastAPI(title="Finbox", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("{} {}", request.method, request.url.path)
    response: Response = await call_next(request)
    logger.info("→ {}", response.status_code)
    return response


app.include_router(router)

settings = get_settings()


@app.on_event("startup")
async def startup():
    """Run the first sync and start the daily accrual loop."""
    from finbox.deps import get_service
    from finbox.sync.scheduler import accrual_loop

    service = get_service()

    if settings.run_scheduler:
        app.state.accrual_task = asyncio.create_task(accrual_loop(service, service.tz))
        logger.info("Daily accrual loop started ({})", settings.timezone)

    if not settings.telegram_bot_token:
        logger.warning("TELEGRAM_BOT_TOKEN not set, skipping startup sync")
        return

    if settings.sync_on_startup:
        report = await service.run_cycle()
        logger.info("Startup sync finished with status {}", report.status)


@app.on_event("shutdown")
async def shutdown():
    """Stop the accrual loop."""
    task = getattr(app.state, "accrual_task", None)
    if task:
        task.cancel()
        logger.info("Daily accrual loop stopped")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
