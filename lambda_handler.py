"""
AWS Lambda handler for the CVD Commission Engine API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import base64
import json
import logging
import threading

from cvd_engine import CommissionProcessor
from cvd_engine.config import Settings
from cvd_engine.exceptions import CommissionError, InvoiceAllocationError

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

settings = Settings.from_env()

# Environment (dev, staging, prod)
ENVIRONMENT = settings.environment

# Processor is reused across warm invocations, created on first use
processor = None
_processor_lock = threading.Lock()

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}


def get_processor():
    global processor
    if processor is None:
        with _processor_lock:
            if processor is None:
                processor = CommissionProcessor.from_settings(settings)
    return processor


def _response(status_code, body):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(body)}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health, GET /api
    - POST /cvd/compute, POST /cvd/estimate
    - POST /invoice/generate-or-get
    - GET /invoice/preview-number?periode=YYYY-MM
    - GET /cvd/tranches/{n}
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path == "/cvd/compute" and http_method == "POST":
        return handle_action(event, lambda data: get_processor().compute_from_dict(data), "CVD compute")
    elif path == "/cvd/estimate" and http_method == "POST":
        return handle_action(event, lambda data: get_processor().estimate_from_dict(data), "CVD estimate")
    elif path == "/invoice/generate-or-get" and http_method == "POST":
        return handle_action(
            event, lambda data: get_processor().invoice_from_dict(data), "Invoice generate-or-get"
        )
    elif path == "/invoice/preview-number" and http_method == "GET":
        return handle_preview_number(event)
    elif path.startswith("/cvd/tranches/") and http_method == "GET":
        return handle_tier_details(path.rsplit("/", 1)[-1])
    else:
        return _response(404, {"error": "Not found", "path": path})


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "environment": ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "CVD Commission Engine API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": {
                "compute": "/cvd/compute [POST]",
                "estimate": "/cvd/estimate [POST]",
                "generate_or_get": "/invoice/generate-or-get [POST]",
                "preview_number": "/invoice/preview-number [GET]",
                "tier_details": "/cvd/tranches/{n} [GET]",
                "health": "/health [GET]",
            },
        },
    )


def _parse_body(event):
    body = event.get("body", "")
    if isinstance(body, str):
        if not body:
            return None
        # Handle base64 encoded body (API Gateway)
        if event.get("isBase64Encoded"):
            body = base64.b64decode(body).decode("utf-8")
        return json.loads(body)
    return body


def handle_action(event, action, label):
    """Run an engine action on the request body."""
    try:
        input_data = _parse_body(event)
        if not input_data or not isinstance(input_data, dict):
            return _response(400, {"error": "No input data provided", "status": "failed"})

        seller = input_data.get("vendeurId", input_data.get("seller_id", "Unknown"))
        logger.info(f"{label}: seller {seller}")

        result = action(input_data)

        return _response(200, result)

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except CommissionError as e:
        # Blocking business error: name the sale/client that triggered it
        logger.error(f"{label} blocked: {e.message}")
        return _response(400, {**e.to_dict(), "status": "validation_failed"})

    except InvoiceAllocationError as e:
        logger.error(f"{label} failed: {e.message}")
        return _response(503, {**e.to_dict(), "status": "failed"})

    except (ValueError, KeyError, TypeError) as e:
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": "validation_failed"})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(500, {"error": "An unexpected error occurred during processing", "status": "failed"})


def handle_preview_number(event):
    params = event.get("queryStringParameters") or {}
    periode = params.get("periode")
    if not periode:
        return _response(400, {"error": "periode is required", "status": "validation_failed"})
    try:
        return _response(200, get_processor().preview_number_from_period(periode))
    except ValueError as e:
        return _response(400, {"error": str(e), "status": "validation_failed"})
    except InvoiceAllocationError as e:
        logger.error(f"Invoice number preview failed: {e.message}")
        return _response(503, {**e.to_dict(), "status": "failed"})


def handle_tier_details(raw_index):
    try:
        return _response(200, get_processor().tier_details(int(raw_index)))
    except ValueError as e:
        return _response(404, {"error": str(e), "status": "not_found"})
