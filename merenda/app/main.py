from fastapi import FastAPI

from merenda.app.api.errors import install_error_handlers
from merenda.app.api.v1.router import router as v1_router
from merenda.app.logging_config import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="MERENDA STOCK LEDGER", version="0.1.0")
    install_error_handlers(app)
    app.include_router(v1_router, prefix="/v1")
    return app


app = create_app()
