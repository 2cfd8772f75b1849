import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session, sessionmaker

from spotnere.api.routes.routes import router
from spotnere.infrastructure.config import Settings, load_settings
from spotnere.infrastructure.db.models import Base
from spotnere.infrastructure.db.session import (
    build_session_factory,
    create_db_engine,
    wait_for_db,
)
from spotnere.infrastructure.gateway.razorpay_gateway import PaymentGateway, RazorpayGateway
from spotnere.infrastructure.push.expo_push import ExpoPushClient

logger = logging.getLogger(__name__)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Missing or malformed input is a plain 400 for the mobile client.
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": _jsonable_errors(exc)},
    )


def _jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


def create_app(
    settings: Settings | None = None,
    *,
    gateway: PaymentGateway | None = None,
    push_client=None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """
    Builds the API with its collaborators constructed once here and kept on
    app.state. Tests pass fakes for the gateway and push client.
    """
    settings = settings or load_settings()

    if session_factory is None:
        engine = create_db_engine(settings.database_url)
        session_factory = build_session_factory(engine)
    else:
        engine = session_factory.kw["bind"]

    app = FastAPI(title="Spotnere Payments")
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.gateway = gateway or RazorpayGateway.from_settings(settings)
    app.state.push_client = push_client or ExpoPushClient(
        push_url=settings.expo_push_url,
        timeout_seconds=settings.push_timeout_seconds,
    )

    if not settings.razorpay_webhook_secret:
        logger.warning("RAZORPAY_WEBHOOK_SECRET is not set; webhooks will be rejected.")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.include_router(router)

    @app.on_event("startup")
    def on_startup() -> None:
        wait_for_db(
            engine,
            max_retries=settings.db_connect_max_retries,
            retry_delay_seconds=settings.db_connect_retry_delay,
        )
        Base.metadata.create_all(bind=engine)

    return app


def run() -> None:
    import uvicorn

    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
