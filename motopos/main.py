import logging

from fastapi import Depends, FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from motopos.api.routes.activities import router as activities_router
from motopos.api.routes.catalog import router as catalog_router
from motopos.api.routes.customers import router as customers_router
from motopos.api.routes.drafts import router as drafts_router
from motopos.api.routes.invoices import router as invoices_router
from motopos.api.routes.search import router as search_router
from motopos.api.routes.statistics import router as statistics_router
from motopos.core.config import settings
from motopos.core.logging import configure_logging
from motopos.db.database import get_db

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(catalog_router)
app.include_router(customers_router)
app.include_router(drafts_router)
app.include_router(invoices_router)
app.include_router(activities_router)
app.include_router(statistics_router)
app.include_router(search_router)


@app.get("/health", tags=["System"])
def health_check():
    return {"status": "ok"}


@app.get("/health/db", tags=["System"])
def database_health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Database health check failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database unavailable") from exc
    return {"status": "ok", "database": "ok"}
