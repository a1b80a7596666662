from flask import Flask, request, jsonify
from flask_cors import CORS
from cvd_engine import CommissionProcessor
from cvd_engine.config import Settings
from cvd_engine.exceptions import CommissionError, InvoiceAllocationError
import os
import logging
import threading

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes (the CRM front end and the invoice renderer call the API)
CORS(app)

# Created on first request so importing the module does not touch the store
processor = None
_processor_lock = threading.Lock()


def get_processor() -> CommissionProcessor:
    global processor
    if processor is None:
        with _processor_lock:
            if processor is None:
                processor = CommissionProcessor.from_settings(Settings.from_env())
    return processor


def _handle(action, label):
    """Run an engine action and map its errors to HTTP responses."""
    try:
        input_data = request.get_json(force=True, silent=True)

        if not input_data or not isinstance(input_data, dict):
            return jsonify({
                "error": "No input data provided",
                "status": "failed"
            }), 400

        seller = input_data.get("vendeurId", input_data.get("seller_id", "Unknown"))
        period = input_data.get("periode", input_data.get("period", "Unknown"))
        logger.info(f"{label}: seller {seller}, period {period}")

        result = action(input_data)
        return jsonify(result), 200

    except CommissionError as e:
        # Blocking business error: report which sale/client triggered it
        logger.error(f"{label} blocked: {e.message}")
        return jsonify({**e.to_dict(), "status": "validation_failed"}), 400

    except InvoiceAllocationError as e:
        logger.error(f"{label} failed: {e.message}")
        return jsonify({**e.to_dict(), "status": "failed"}), 503

    except ValueError as e:
        logger.error(f"Validation error: {str(e)}")
        return jsonify({
            "error": str(e),
            "status": "validation_failed"
        }), 400

    except Exception as e:
        logger.error(f"{label} error: {str(e)}", exc_info=True)
        return jsonify({
            "error": "An unexpected error occurred during processing",
            "status": "failed"
        }), 500


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "CVD Commission Engine API",
        "version": "1.0",
        "endpoints": {
            "compute": "/cvd/compute [POST]",
            "estimate": "/cvd/estimate [POST]",
            "tier_details": "/cvd/tranches/<n> [GET]",
            "generate_or_get": "/invoice/generate-or-get [POST]",
            "preview_number": "/invoice/preview-number?periode=YYYY-MM [GET]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


@app.route("/cvd/compute", methods=["POST"])
def compute():
    """Fiscal commission statement for one seller and period"""
    return _handle(lambda data: get_processor().compute_from_dict(data), "CVD compute")


@app.route("/cvd/estimate", methods=["POST"])
def estimate():
    """Preview estimate; never usable for invoicing"""
    return _handle(lambda data: get_processor().estimate_from_dict(data), "CVD estimate")


@app.route("/invoice/generate-or-get", methods=["POST"])
def generate_or_get():
    """Compute the statement, then issue or return the fiscal invoice"""
    return _handle(lambda data: get_processor().invoice_from_dict(data), "Invoice generate-or-get")


@app.route("/invoice/preview-number", methods=["GET"])
def preview_number():
    periode = request.args.get("periode")
    if not periode:
        return jsonify({"error": "periode is required", "status": "validation_failed"}), 400
    try:
        return jsonify(get_processor().preview_number_from_period(periode)), 200
    except ValueError as e:
        return jsonify({"error": str(e), "status": "validation_failed"}), 400
    except InvoiceAllocationError as e:
        logger.error(f"Invoice number preview failed: {e.message}")
        return jsonify({**e.to_dict(), "status": "failed"}), 503


@app.route("/cvd/tranches/<int:tier_index>", methods=["GET"])
def tier_details(tier_index):
    try:
        return jsonify(get_processor().tier_details(tier_index)), 200
    except ValueError as e:
        return jsonify({"error": str(e), "status": "not_found"}), 404


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
