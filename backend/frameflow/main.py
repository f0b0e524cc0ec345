# frameflow/main.py
from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, JSONResponse

from frameflow.core.config import get_settings
from frameflow.core.logger import setup_app_logger
from frameflow.api import router as api_router
from frameflow.middleware.request_log import RequestLogMiddleware

settings = get_settings()  # reads .env, ensure_dirs() runs inside
setup_app_logger(name="frameflow", log_dir=settings.LOG_DIR)

app = FastAPI(
    title=settings.APP_NAME,
    debug=settings.DEBUG,
)

# -----------------------------
# CORS
# -----------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# -----------------------------
# Routers
# -----------------------------
app.include_router(api_router, prefix=settings.API_PREFIX)

app.add_middleware(RequestLogMiddleware)


# -----------------------------
# Utility endpoints
# -----------------------------
@app.get("/", include_in_schema=False)
def root():
    """Redirect to the interactive docs."""
    return RedirectResponse(url="/docs")


@app.get("/healthz", tags=["system"])
def health():
    return JSONResponse({"ok": True, "name": settings.APP_NAME})


@app.get("/version", tags=["system"])
def version():
    """Models and continuity knobs in effect, handy when debugging a board."""
    return {
        "app": settings.APP_NAME,
        "debug": settings.DEBUG,
        "api_prefix": settings.API_PREFIX,
        "models": {
            "text": settings.GEMINI_MODEL_TEXT,
            "image": settings.GEMINI_MODEL_IMAGE,
            "image_edit": settings.GEMINI_MODEL_IMAGE_EDIT,
            "video": settings.GEMINI_MODEL_VIDEO,
        },
        "transition_progress": settings.TRANSITION_PROGRESS,
        "parallel_transitions": settings.PARALLEL_TRANSITIONS,
    }
