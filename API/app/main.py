from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.health import router as health_router
from app.api.solve import router as solve_router
from app.core.errors import register_exception_handlers, request_id_middleware
from app.core.logging import configure_logging
from app.core.settings import settings


configure_logging(settings.log_level)

app = FastAPI(title="SM-AS Homework API", version="0.1.0")
app.include_router(health_router)
app.include_router(solve_router)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)
