from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from app.routes import allergen
import time
import logging

from app.core.config import LOG_LEVEL
from app.core.database import engine, init_models

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S"
)
logger = logging.getLogger(__name__)

app = FastAPI()

@app.on_event("startup")
async def startup_event():
    try:
        await init_models()
        logger.info("Exact cache tables ensured")
    except Exception as e:
        logger.error(f"Database init failed: {e}")

@app.on_event("shutdown")
async def shutdown_event():
    try:
        await engine.dispose()
        logger.info("Database engine disposed")
    except Exception as e:
        logger.warning(f"Database dispose failed: {e}")

@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    path = request.url.path
    method = request.method

    response = await call_next(request)

    process_time = time.time() - start_time

    logger.info(f"{method} {path} - Status: {response.status_code} - Time: {process_time:.3f}s")

    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(allergen.router, prefix="/api")

@app.get("/")
async def root():
    return {"message": "Allergen Intelligence API"}
