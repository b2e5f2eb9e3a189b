from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from marketplace_client.core.config import get_settings
from marketplace_client.core.logging import configure_logging
from marketplace_client.devserver.routers import auth as auth_router
from marketplace_client.devserver.routers import messaging as messaging_router
from marketplace_client.devserver.routers import projects as projects_router

API_PREFIX = "/api"

app = FastAPI(title="Marketplace development backend")

app.include_router(auth_router.router, prefix=API_PREFIX)
app.include_router(projects_router.router, prefix=API_PREFIX)
app.include_router(messaging_router.router, prefix=API_PREFIX)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # The client expects {"message": ...}, not FastAPI's {"detail": ...}
    return JSONResponse(status_code=exc.status_code, content={"message": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for error in exc.errors():
        field = str(error["loc"][-1]) if error.get("loc") else "body"
        errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    first = next(iter(errors.values()))[0] if errors else "The given data was invalid."
    return JSONResponse(
        status_code=422,
        content={"message": first, "errors": errors},
    )


@app.get("/")
async def root():
    return {"message": "Marketplace development backend. API under /api"}


def main():
    """Run the development backend."""
    configure_logging(get_settings().log_level)
    uvicorn.run(
        "marketplace_client.devserver.main:app",
        host="127.0.0.1",
        port=8000,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    main()
