import logging
import os
from pathlib import Path

from dotenv import load_dotenv

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(ROOT_DIR / ".env")

from handlers.health_handler import router as health_router
from handlers.timeline_handler import router as timeline_router

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


def _attach_file_handler(
    logger_name: str,
    log_file_path: Path,
    level_name: str | None = None,
) -> None:
    logger_level = (level_name or LOG_LEVEL).upper()
    logger_level_value = getattr(logging, logger_level, logging.INFO)

    log_file_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setLevel(logger_level_value)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    target_logger = logging.getLogger(logger_name)
    if not any(
        isinstance(handler, logging.FileHandler)
        and getattr(handler, "baseFilename", None) == str(log_file_path)
        for handler in target_logger.handlers
    ):
        target_logger.addHandler(file_handler)
    target_logger.setLevel(logger_level_value)

TIMELINE_LOG_FILE = os.getenv("TIMELINE_LOG_FILE", "").strip()
TIMELINE_LOG_LEVEL = os.getenv("TIMELINE_LOG_LEVEL", "INFO").strip()
if TIMELINE_LOG_FILE:
    timeline_log_path = Path(TIMELINE_LOG_FILE)
    if not timeline_log_path.is_absolute():
        timeline_log_path = ROOT_DIR / timeline_log_path
    _attach_file_handler("operators", timeline_log_path, level_name=TIMELINE_LOG_LEVEL)
    _attach_file_handler("handlers.timeline_handler", timeline_log_path, level_name=TIMELINE_LOG_LEVEL)
    _attach_file_handler("agent.timeline_tools", timeline_log_path, level_name=TIMELINE_LOG_LEVEL)

CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "CORS_ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:5173",
    ).split(",")
    if origin.strip()
]

app = FastAPI(title="Timeline Editor Backend")


app.include_router(health_router)
app.include_router(timeline_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["*"],
)

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
