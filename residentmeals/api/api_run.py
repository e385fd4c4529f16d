from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import logging

from residentmeals.domain.errors import OrderError, PaymentError, AuthorizationError
from residentmeals.events.event_helpers import start_order_logging
from residentmeals.utilities.config import DEBUG

# Routers
from residentmeals.api.routes import menu, resident_orders

# Logging
logger = logging.getLogger("residentmeals")

API_PREFIX = "/api/nursing-homes"

# Initialize FastAPI app
app = FastAPI(title="Resident Weekly Meal Orders API", debug=DEBUG)

# Include routers
app.include_router(menu.router, prefix=API_PREFIX)
app.include_router(resident_orders.router, prefix=API_PREFIX)


@app.on_event("startup")
def _startup_order_logging():
    """Register the event bus subscriber that logs order lifecycle events."""
    start_order_logging()
    logger.info("Order event logging started")


# -------------------- Error mapping --------------------
@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    if isinstance(exc, AuthorizationError):
        logger.warning("%s %s denied: %s", request.method, request.url.path, exc.message)
    body = {"success": False, "error": exc.message, "message": exc.message}
    if isinstance(exc, PaymentError):
        body["error"] = "Payment failed"
        if exc.code:
            body["code"] = exc.code
    details = exc.details
    if isinstance(details, dict) and "message" in details:
        body["message"] = details["message"]
        details = {k: v for k, v in details.items() if k != "message"}
    if details:
        body["details"] = details
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()]
    return JSONResponse(status_code=400, content={
        "success": False, "error": "Validation failed", "details": details,
    })


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={
        "success": False, "error": "Internal server error",
    })


@app.get("/health")
def health():
    return {"status": "ok"}
