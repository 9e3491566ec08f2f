from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from rental_auth.base_microservice import BaseMicroservice, EnvelopeResponse, OutcomeCode, ServiceResult
from rental_auth.auth.router import router as auth_router, start_auth_service

load_dotenv()

# Create shared base microservice instance
base_service = BaseMicroservice()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for FastAPI.
    Handles startup and shutdown events.
    """
    base_service.log_event("service.startup", {"service": "main"})
    await start_auth_service()
    yield
    base_service.log_event("service.shutdown", {"service": "main"})


# Create main FastAPI app with lifespan
app = FastAPI(
    title="Loccar Auth API",
    description="Authentication and registration for the Loccar rental platform",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, replace with specific origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report malformed request bodies with the standard envelope."""
    details = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    )
    base_service.log_event("request.invalid", {"path": request.url.path, "errors": details})
    return EnvelopeResponse(ServiceResult.of(OutcomeCode.BAD_REQUEST, f"Invalid data: {details}"))


# Include routers with prefixes
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])


@app.get("/health", tags=["health"])
async def health_check():
    """Overall system health check."""
    return {
        "status": "ok",
        "services": {
            "auth": "online"
        }
    }


# For running directly with uvicorn
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("rental_auth.main:app", host="0.0.0.0", port=8000, reload=True)
