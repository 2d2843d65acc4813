import logging

import uvicorn
from fastapi import FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from stripe_sandbox import config
from stripe_sandbox.exceptions import InvalidRequest, WebhookVerificationError
from stripe_sandbox.routes import router
from stripe_sandbox.webhooks import dispatch, verify_event

logger = logging.getLogger(__name__)

ENDPOINTS = [
    "POST /create-payment-intent",
    "POST /create-customer",
    "GET  /payment-status/:id",
    "POST /webhook",
]

app = FastAPI(title="Stripe Sandbox Server")

app.include_router(router)


@app.exception_handler(InvalidRequest)
async def invalid_request_handler(request: Request, exc: InvalidRequest):
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=400, content={"error": exc.message, "type": exc.type})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    # Integer loc parts are byte offsets or list indexes, not field names
    field = ".".join(part for part in first.get("loc", ()) if isinstance(part, str) and part != "body")
    if first.get("type") == "json_invalid":
        message = "Invalid JSON body"
    elif field:
        message = f"{field}: {first.get('msg')}"
    else:
        message = str(first.get("msg", "Invalid request body"))
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, message)
    return JSONResponse(status_code=400, content={"error": message, "type": InvalidRequest.type})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.get("/")
def health():
    return {
        "status": "running",
        "environment": "Stripe sandbox (test mode)",
        "endpoints": ENDPOINTS,
    }


# Signature verification needs the untouched request bytes, so this route
# reads the raw body instead of declaring a JSON model.
@app.post("/webhook")
async def stripe_webhook(request: Request, stripe_signature: str = Header(None)):
    payload = await request.body()

    try:
        event = verify_event(payload, stripe_signature, config.webhook_secret())
    except WebhookVerificationError as e:
        logger.error("Webhook signature verification failed: %s", e)
        return JSONResponse(status_code=400, content={"error": f"Webhook Error: {e}"})

    logger.info("Webhook received: %s | ID: %s", event.type, event.id)

    try:
        dispatch(event)
    except Exception:
        # Stripe redelivers on 500
        logger.exception("Error processing webhook event %s (%s)", event.id, event.type)
        return JSONResponse(status_code=500, content={"error": "Internal error processing webhook"})

    return {"received": True, "eventType": event.type, "eventId": event.id}


def run():
    config.configure_logging()
    logger.info("Stripe sandbox server running on http://localhost:%s", config.PORT)
    logger.info("Using Stripe key: %s", config.masked_key())
    uvicorn.run(app, host=config.HOST, port=config.PORT, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
