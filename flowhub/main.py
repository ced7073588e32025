from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from flowhub.api.v1 import api_router
from flowhub.core.config_file import get_settings
from flowhub.core.exceptions import APIException
from flowhub.core.integrations import ConnectorRegistry, EngineHooks, StaticCredentialVault
from flowhub.core.integrations.connectors import register_builtin_connectors
from flowhub.core.jobs.queue import get_job_queue
from flowhub.core.logging import configure_logging

settings = get_settings()
configure_logging()

app = FastAPI(
    title="Flowhub API",
    version="0.1.0",
    description="Workflow automation engine: trigger intake and flow execution",
    docs_url="/docs",
    openapi_url="/openapi.json",
)

# Engine collaborators shared by request handlers
app.state.registry = register_builtin_connectors(ConnectorRegistry())
app.state.vault = StaticCredentialVault()
app.state.queue = get_job_queue(settings)
app.state.hooks = EngineHooks()


@app.exception_handler(APIException)
async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle APIException and return the standard error format."""
    response_content = exc.detail.copy()
    response_content["data"] = None
    return JSONResponse(
        status_code=exc.status_code,
        content=response_content,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Format request validation errors in the standard error envelope."""
    details: dict[str, list[str]] = {}
    for error in exc.errors():
        field_path = error["loc"]
        field_name = str(field_path[-1] if len(field_path) > 1 else field_path[0])
        details.setdefault(field_name, []).append(error["msg"])

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Validation failed",
                "details": details,
            },
            "data": None,
        },
    )


@app.get("/healthz", tags=["system"])
def healthz():
    """Health check endpoint."""
    return {
        "status": "ok",
        "env": settings.ENV,
        "debug": settings.DEBUG,
    }


app.include_router(api_router)
