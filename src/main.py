import logging
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from config import settings
from create_tables import create_tables

from modules.documents.errors import DocumentError
from modules.documents.controllers.document_controller import router as document_router
from modules.documents.controllers.signature_controller import router as signature_router
from modules.documents.controllers.annotation_controller import router as annotation_router
from modules.documents.controllers.fast_sign_controller import router as fast_sign_router

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup logic ---
    logger.info("Starting document signing service")
    create_tables()
    logger.info("Tables ready")
    yield
    # --- Shutdown logic ---
    logger.info("Document signing service stopped")

app = FastAPI(
    title="Document Signing Service",
    description="API for placing, storing and burning recipient signatures into PDF documents",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=[
        "Content-Disposition",
        "X-Document-Status",
        "X-Signature-Count",
        "X-Skipped-Annotations",
        "X-Signed-By",
        "X-Signed-Date",
        "X-Document-Type",
    ],
    max_age=86400,
)


@app.exception_handler(DocumentError)
async def document_error_handler(request: Request, exc: DocumentError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})

# Routers
app.include_router(document_router, prefix="/documents")
app.include_router(signature_router, prefix="/documents")
app.include_router(annotation_router, prefix="/annotations")
app.include_router(fast_sign_router, prefix="/fast-sign")

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
