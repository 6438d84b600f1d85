# app.py (Flask) - quiz backend: file uploads, quiz scores and the built frontend
import logging
import os
import sys
import threading

import click
from dotenv import load_dotenv
from flask import Flask, jsonify, request, send_file, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.security import safe_join

from database import ScoreStoreError, add_score, export_scores, get_scores, init_db
from uploads import (
    MAX_FILE_SIZE, SIZE_ERROR, UploadRejected,
    init_upload_folder, list_uploads, resolve_download, save_upload,
)

logger = logging.getLogger(__name__)

# ------------------------------------------------------------------
# 1.  Config
# ------------------------------------------------------------------
load_dotenv()
BASE_DIR = os.path.dirname(os.path.abspath(__file__))

app = Flask(__name__, static_folder=None)
app.config["UPLOAD_FOLDER"] = os.environ.get("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
app.config["SCORES_DB"] = os.environ.get("SCORES_DB", os.path.join(BASE_DIR, "scores.db"))
app.config["LEGACY_SCORES_FILE"] = os.environ.get(
    "LEGACY_SCORES_FILE", os.path.join(BASE_DIR, "scores.json")
)
app.config["FRONTEND_DIST"] = os.environ.get("FRONTEND_DIST", os.path.join(BASE_DIR, "dist"))
# room for the multipart envelope around a file at the limit
app.config["MAX_CONTENT_LENGTH"] = MAX_FILE_SIZE + 64 * 1024

HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", 5000))

CORS(app, origins=os.environ.get("CORS_ORIGINS", "*"))


_storage_lock = threading.Lock()


def _storage_paths(flask_app):
    return flask_app.config["UPLOAD_FOLDER"], flask_app.config["SCORES_DB"]


def init_storage(flask_app):
    """Create the uploads folder and the score table. Run once before serving."""
    init_upload_folder(flask_app.config["UPLOAD_FOLDER"])
    init_db(flask_app.config["SCORES_DB"], flask_app.config.get("LEGACY_SCORES_FILE"))
    flask_app.extensions["storage_ready"] = _storage_paths(flask_app)
    logger.info(
        "Storage ready: uploads=%s scores=%s",
        flask_app.config["UPLOAD_FOLDER"], flask_app.config["SCORES_DB"],
    )


@app.before_request
def ensure_storage():
    # covers `flask run` and WSGI servers that import app:app without main()
    if app.extensions.get("storage_ready") == _storage_paths(app):
        return None
    with _storage_lock:
        if app.extensions.get("storage_ready") == _storage_paths(app):
            return None
        try:
            init_storage(app)
        except (OSError, ScoreStoreError):
            logger.exception("Storage initialization failed")
            return jsonify({"error": "Storage unavailable"}), 500
    return None

# ------------------------------------------------------------------
# 2.  Errors
# ------------------------------------------------------------------
@app.errorhandler(UploadRejected)
def upload_rejected(e):
    return jsonify({"error": e.message}), e.status

@app.errorhandler(RequestEntityTooLarge)
def too_large(e):
    logger.warning("Rejected request body over %d bytes", app.config["MAX_CONTENT_LENGTH"])
    return jsonify({"error": SIZE_ERROR}), 413

@app.errorhandler(ScoreStoreError)
def score_store_failed(e):
    logger.error("Score store failure: %s", e)
    return jsonify({"error": "Failed to access scores"}), 500

# ------------------------------------------------------------------
# 3.  Files
# ------------------------------------------------------------------
@app.route("/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file uploaded"}), 400
    try:
        info = save_upload(app.config["UPLOAD_FOLDER"], request.files["file"])
    except OSError:
        logger.exception("Could not write upload")
        return jsonify({"error": "Failed to save file"}), 500
    return jsonify(info)

@app.route("/uploads")
def uploads():
    try:
        files = list_uploads(app.config["UPLOAD_FOLDER"])
    except OSError:
        logger.exception("Could not read %s", app.config["UPLOAD_FOLDER"])
        return jsonify({"error": "Failed to read uploads folder"}), 500
    return jsonify(files)

@app.route("/download/<path:filename>")
def download(filename):
    path = resolve_download(app.config["UPLOAD_FOLDER"], filename)
    if path is None:
        return jsonify({"error": "File not found"}), 404
    return send_file(path, as_attachment=True)

# ------------------------------------------------------------------
# 4.  Quiz scores
# ------------------------------------------------------------------
@app.route("/save-score", methods=["POST"])
def save_score():
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or "score" not in data:
        return jsonify({"message": "Score is required!"}), 400
    record = add_score(app.config["SCORES_DB"], data["score"])
    return jsonify({"message": "Score saved successfully!", "score": record})

@app.route("/get-score")
def get_score():
    scores = get_scores(app.config["SCORES_DB"])
    if scores:
        return jsonify(scores)
    return jsonify({"message": "No scores found yet!"})

@app.cli.command("export-scores")
@click.argument("path", required=False)
def export_scores_command(path):
    """Dump every score to a pretty-printed JSON array (default: scores.json)."""
    path = path or app.config["LEGACY_SCORES_FILE"]
    try:
        init_storage(app)
        count = export_scores(app.config["SCORES_DB"], path)
    except (OSError, ScoreStoreError) as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"{count} scores written to {path}")

# ------------------------------------------------------------------
# 5.  Frontend
# ------------------------------------------------------------------
@app.route("/api/hello")
def hello():
    return jsonify({"message": "Hello from backend!"})

@app.route("/", defaults={"path": ""})
@app.route("/<path:path>")
def frontend(path):
    dist = app.config["FRONTEND_DIST"]
    if path:
        asset = safe_join(dist, path)
        if asset is not None and os.path.isfile(asset):
            return send_from_directory(dist, path)
    if not os.path.isfile(os.path.join(dist, "index.html")):
        return jsonify({"error": "Frontend build not found"}), 404
    # client-side routes all land on the entry page
    return send_from_directory(dist, "index.html")

# ------------------------------------------------------------------
# 6.  Startup
# ------------------------------------------------------------------
def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - [%(levelname)s] - %(message)s",
        stream=sys.stdout,
    )
    try:
        init_storage(app)
    except (OSError, ScoreStoreError) as e:
        logger.critical("FATAL: storage initialization failed: %s", e, exc_info=True)
        sys.exit(1)
    logger.info("Server running on http://localhost:%d", PORT)
    app.run(host=HOST, port=PORT)

if __name__ == "__main__":
    main()
