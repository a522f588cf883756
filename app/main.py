import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, status
from app.core.db import init_db, close_db
from app.api.v1.production import router as production_router
from app.api.v1.analytics import router as analytics_router
from app.api.v1.inventory import router as inventory_router
from app.api.v1.catalog import router as catalog_router
from app.core.config import LOG_LEVEL, PROJECT_NAME, VERSION
from app.core.exception_handlers import setup_exception_handlers

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db() # Connect to DB and generate schemas
    yield
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")

app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(production_router, prefix="/api/v1", tags=["Production"])
app.include_router(analytics_router, prefix="/api/v1/production", tags=["Production Analytics"])
app.include_router(inventory_router, prefix="/api/v1/inventory", tags=["Inventory Ledger"])
app.include_router(catalog_router, prefix="/api/v1/catalog", tags=["Catalog Utilities"])


setup_exception_handlers(app)

@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
