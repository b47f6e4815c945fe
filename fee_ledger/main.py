from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from fee_ledger.app_logger import logger
from fee_ledger.api.v1.fee_types.router import router as fee_types_router
from fee_ledger.api.v1.fee_structures.router import router as fee_structures_router
from fee_ledger.api.v1.fee_reminders.router import router as fee_reminders_router
from fee_ledger.api.v1.fees.router import router as fees_router


def create_app() -> FastAPI:
    app = FastAPI(title="School Fee Ledger")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(fee_types_router)
    app.include_router(fee_structures_router)
    app.include_router(fee_reminders_router)
    app.include_router(fees_router)

    logger.info("Fee ledger API initialised")
    return app


app = create_app()
