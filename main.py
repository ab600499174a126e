"""
Main FastAPI application entry point.
"""
import uvicorn
import logging
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from routers import schedule
from config import settings
from service.errors import (
    DuplicateIdentifier,
    InternalInvariantError,
    InvalidInput,
    MissingInputData,
    SchedulingCancelled,
    SchedulingError,
    SolverTimeout,
)

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Initialize the FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Assigns exams to rooms and timeslots without double-booking, "
                "reporting why any exam could not be placed.",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = [
    (InvalidInput, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (DuplicateIdentifier, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (MissingInputData, status.HTTP_404_NOT_FOUND),
    (SchedulingCancelled, status.HTTP_504_GATEWAY_TIMEOUT),
    (SolverTimeout, status.HTTP_504_GATEWAY_TIMEOUT),
    (InternalInvariantError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


# Custom exception handler for validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert FastAPI validation errors to human-friendly format.

    Expected format:
    {
        "errors": {
            "field_name": ["Error message 1", "Error message 2"]
        }
    }
    """
    errors = {}

    for error in exc.errors():
        # Extract field name from error location
        field_path = error.get("loc", [])

        # Skip "body" prefix and build field name
        if len(field_path) > 1 and field_path[0] == "body":
            field_path = field_path[1:]

        # Convert field path to human-readable name
        field_name = " -> ".join(str(p) for p in field_path)

        # Convert snake_case to Title Case with spaces
        field_name = field_name.replace("_", " ").title()
        field_name = field_name.replace("Students Count", "Students")

        error_msg = error.get("msg", "Invalid value")
        error_type = error.get("type", "")

        # Create human-friendly messages
        if error_type == "missing":
            error_msg = f"{field_name} is required."
        elif error_type.startswith("int_"):
            error_msg = f"{field_name} must be a whole number."
        else:
            error_msg = f"{field_name}: {error_msg}"

        errors.setdefault(field_name, []).append(error_msg)

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"errors": errors}
    )


@app.exception_handler(SchedulingError)
async def scheduling_exception_handler(request: Request, exc: SchedulingError):
    """Fatal scheduling errors abort the run; nothing has been persisted."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_class, code in ERROR_STATUS:
        if isinstance(exc, error_class):
            status_code = code
            break

    if status_code >= 500 and not isinstance(exc, (SchedulingCancelled, SolverTimeout)):
        logger.error(f"Scheduling invariant violated: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"Scheduling request rejected ({exc.code}): {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": exc.code, "message": exc.message}}
    )


# Include routers
app.include_router(schedule.router, prefix="/api/v1", tags=["scheduling"])


@app.get("/", tags=["health"])
async def root():
    """Root endpoint - API health check."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "healthy",
        "docs": "/docs"
    }


@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy"}


if __name__ == "__main__":
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload
    )
