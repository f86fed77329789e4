from flask import Flask, request, jsonify, send_from_directory, Response, stream_with_context
from flask_cors import CORS
import os
import json
from datetime import datetime
import logging

from backend.analytics.aggregate import AnomalyDetector
from backend.analytics.config import Config
from backend.analytics.errors import AnalyticsConfigError
from backend.analytics.pipeline import AnalyticsPipeline, top_customers

# Setup Logging
logging.basicConfig(
    filename=Config.LOG_FILE,
    level=logging.DEBUG,
    format='%(asctime)s %(levelname)s: %(message)s'
)
logging.info("Server starting up...")


app = Flask(__name__)
CORS(app, resources={r"/*": {"origins": os.environ.get("CORS_ORIGINS", "http://localhost:5173").split(",")}})

# Folders
UPLOAD_FOLDER = os.path.abspath(Config.UPLOAD_FOLDER)
OUTPUT_FOLDER = os.path.abspath(Config.OUTPUT_FOLDER)
os.makedirs(UPLOAD_FOLDER, exist_ok=True)
os.makedirs(OUTPUT_FOLDER, exist_ok=True)

analytics_pipeline = AnalyticsPipeline()

API_BASE_URL = os.environ.get('API_BASE_URL', '').rstrip('/')

ANOMALY_PREVIEW_LIMIT = 50


def _detector_from_form(form) -> AnomalyDetector:
    """Build a detector from optional form overrides, falling back to Config."""
    try:
        return AnomalyDetector(
            std_dev_threshold=float(form.get('std_dev_threshold', Config.STD_DEV_THRESHOLD)),
            history_threshold=int(form.get('history_threshold', Config.HISTORY_THRESHOLD)),
            first_transaction_threshold=float(
                form.get('first_transaction_threshold', Config.FIRST_TRANSACTION_THRESHOLD)
            ),
        )
    except ValueError as e:
        raise AnalyticsConfigError(f"Invalid threshold: {e}") from e


@app.route('/health', methods=['GET'])
def health():
    return jsonify({"status": "ok"})


@app.route('/analyze', methods=['POST'])
def analyze():
    if 'file' not in request.files:
        return jsonify({"error": "No file part"}), 400

    file = request.files['file']
    if file.filename == '':
        return jsonify({"error": "No selected file"}), 400

    file_ext = file.filename.rsplit('.', 1)[-1].lower() if '.' in file.filename else ''
    if file_ext not in Config.ALLOWED_EXTENSIONS:
        return jsonify({"error": f"Unsupported file type: .{file_ext}"}), 400

    target_format = request.form.get('target_format', 'xlsx')
    if target_format not in Config.REPORT_FORMATS:
        return jsonify({"error": f"Unsupported report format: {target_format}"}), 400

    try:
        detector = _detector_from_form(request.form)
    except AnalyticsConfigError as e:
        return jsonify({"error": str(e)}), 400

    # ─── 1. Size Validation (Must happen now while file is open) ───
    file.seek(0, os.SEEK_END)
    file_size_mb = file.tell() / (1024 * 1024)
    file.seek(0)

    if file_size_mb > Config.MAX_UPLOAD_MB:
        return jsonify({"status": "failed", "error": f"File too large ({file_size_mb:.1f}MB). Max is {Config.MAX_UPLOAD_MB}MB."}), 400

    # ─── 2. Persistent Storage (Save immediately) ───
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    safe_filename = f"{timestamp}_{os.path.basename(file.filename).replace(' ', '_')}"
    temp_path = os.path.join(UPLOAD_FOLDER, safe_filename)
    file.save(temp_path)

    def generate():
        # Only plain values from here on; the request is gone once streaming starts
        yield json.dumps({"p": 5, "status": "Initializing..."}) + "\n"

        try:
            final_result = None
            for p, msg, res in analytics_pipeline.process(temp_path, file_ext, target_format, detector=detector):
                if res:
                    final_result = res
                else:
                    yield json.dumps({"p": p, "status": msg}) + "\n"

            if not final_result or not final_result["success"]:
                error_msg = final_result.get("error", "Unknown pipeline error") if final_result else "Pipeline failed"
                yield json.dumps({"status": "failed", "error": error_msg}) + "\n"
                return

            ext = target_format if target_format != 'text' else 'txt'
            out_filename = f"analytics_{os.path.splitext(safe_filename)[0]}.{ext}"
            out_path = os.path.join(OUTPUT_FOLDER, out_filename)
            with open(out_path, 'wb') as f:
                f.write(final_result["output_buffer"].getvalue())

            result = final_result["result"]
            stats = {k: v for k, v in final_result["stats"].items() if k != "dq_report"}
            dq_report = final_result["stats"]["dq_report"]

            yield json.dumps({
                "status": "success",
                "format": target_format,
                "stats": stats,
                "invalid_record_count": result.validation.invalid_record_count,
                "error_sample": result.validation.error_sample(Config.ERROR_SAMPLE_SIZE),
                "monthly_volume": result.monthly_volume,
                "monthly_trend": result.monthly_trend,
                "new_customers": result.new_customers,
                "top_customers": top_customers(result),
                "anomalies": [a.to_dict() for a in result.anomalies[:ANOMALY_PREVIEW_LIMIT]],
                "download_url": f"{API_BASE_URL}/download/{out_filename}",
                "document_hash": stats.get("document_hash"),
                "dq_summary": dq_report["summary"],
            }) + "\n"

        except Exception as e:
            logging.exception("Streaming Error")
            yield json.dumps({"status": "failed", "error": str(e)}) + "\n"
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

    return Response(stream_with_context(generate()), mimetype='application/x-ndjson')


@app.route('/download/<filename>', methods=['GET'])
def download_file(filename):
    if not os.path.isfile(os.path.join(OUTPUT_FOLDER, os.path.basename(filename))):
        return jsonify({"error": "File not found"}), 404
    return send_from_directory(OUTPUT_FOLDER, os.path.basename(filename), as_attachment=True)


if __name__ == '__main__':
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'False') == 'True')
