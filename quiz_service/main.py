import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import Engine

from shared.config import Settings, get_settings
from shared.database import init_db, make_engine, make_session_factory
from shared.errors import register_exception_handlers
from shared.logging_config import configure_logging
from .routes import build_router

logger = logging.getLogger("quiz-service")


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    engine = engine or make_engine(settings.database_url)
    init_db(engine)
    SessionLocal = make_session_factory(engine)

    app = FastAPI(title="Quiz Service", version="1.0.0")

    allow_credentials = True
    if settings.cors_origins == ["*"]:
        # Browsers reject "*" with credentials
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    app.include_router(build_router(SessionLocal, settings), prefix="/quiz", tags=["Quiz"])

    @app.get("/health", tags=["System"])
    def health():
        return {"status": "ok"}

    @app.get("/", tags=["System"])
    def root():
        return {"service": "quiz-service", "status": "running"}

    logger.info("Quiz service ready (database=%s, short answer match=%s)",
                engine.url.render_as_string(hide_password=True), settings.short_answer_match)
    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
