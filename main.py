import logging
import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError

import auth
import banners
import cart
import categories
import orders
import products
from checkout import CheckoutValidationError
from database import db, ensure_indexes
from settings import settings
from uploads import UploadRejected

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(products.router)
app.include_router(orders.router)
app.include_router(orders.checkout_router)
app.include_router(banners.router)
app.include_router(categories.router)
app.include_router(cart.router)

# Uploaded images are served from the same paths save_image returns.
for folder in ("uploads", "banners", "categories"):
    app.mount(
        f"/{folder}",
        StaticFiles(directory=os.path.join(settings.UPLOAD_ROOT, folder), check_dir=False),
        name=folder,
    )


@app.on_event("startup")
def on_startup():
    if db is not None:
        ensure_indexes(db)


# ---------------- Error handling ----------------
def _error_lines(errors) -> list:
    return [f"{'.'.join(str(p) for p in e.get('loc', ()))}: {e.get('msg')}" for e in errors]


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    logger.warning("Rejected %s %s: invalid request", request.method, request.url.path)
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": _error_lines(exc.errors())})


@app.exception_handler(ValidationError)
async def model_validation_handler(request: Request, exc: ValidationError):
    logger.warning("Rejected %s %s: %d validation errors", request.method, request.url.path, exc.error_count())
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": _error_lines(exc.errors())})


@app.exception_handler(CheckoutValidationError)
async def checkout_validation_handler(request: Request, exc: CheckoutValidationError):
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": exc.errors})


@app.exception_handler(UploadRejected)
async def upload_rejected_handler(request: Request, exc: UploadRejected):
    logger.warning("Rejected upload on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(DuplicateKeyError)
async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    logger.warning("Duplicate key on %s: %s", request.url.path, exc.details)
    return JSONResponse(status_code=400, content={"detail": "A record with the same unique value already exists"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    content = {"detail": "Internal server error"}
    if settings.ENVIRONMENT == "development":
        content["message"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# ---------------- Health ----------------
@app.get("/")
def root():
    return {"message": "Frame Store Backend is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    if db is None:
        return response
    response["database"] = "✅ Available"
    response["database_url"] = "✅ Set" if settings.DATABASE_URL else "❌ Not Set"
    response["database_name"] = db.name
    response["connection_status"] = "Connected"
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        response["database"] = f"⚠️ Connected but Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
