# webapp.py
import base64
from io import BytesIO

from flask import Flask, jsonify, request, send_file, send_from_directory

from config import PUBLIC_DIR, VIEWS_DIR

API_INSTANCE = None  # wird in main.py gesetzt

flask_app = Flask(
    __name__,
    static_folder=PUBLIC_DIR,
    static_url_path="/public"
)


def set_api_instance(api):
    global API_INSTANCE
    API_INSTANCE = api


def _not_ready():
    return jsonify({"ok": False, "message": "API nicht initialisiert"}), 500


def _status(result: dict) -> int:
    return 200 if result.get("ok") else 400


@flask_app.route("/")
def root():
    return "<h1>Server läuft</h1><p>Desktop: /desktop</p>"


@flask_app.route("/desktop")
def desktop_page():
    return send_from_directory(VIEWS_DIR, "index.html")


@flask_app.route("/api/printers")
def api_printers():
    if API_INSTANCE is None:
        return _not_ready()
    refresh = request.args.get("refresh", "1") == "1"
    return jsonify(API_INSTANCE.list_printers(refresh=refresh))


@flask_app.route("/api/printers/select", methods=["POST"])
def api_select_printer():
    if API_INSTANCE is None:
        return _not_ready()
    data = request.get_json(silent=True) or {}
    result = API_INSTANCE.select_printer((data.get("printer_name") or "").strip())
    return jsonify(result), _status(result)


@flask_app.route("/api/boxes/derive", methods=["POST"])
def api_derive_boxes():
    if API_INSTANCE is None:
        return _not_ready()
    data = request.get_json(silent=True) or {}
    return jsonify(API_INSTANCE.derive_boxes(data.get("articles") or [], data.get("boxes") or []))


@flask_app.route("/api/boxes/remove", methods=["POST"])
def api_remove_box():
    if API_INSTANCE is None:
        return _not_ready()
    data = request.get_json(silent=True) or {}
    box_id = (data.get("box_id") or "").strip()
    if not box_id:
        return jsonify({"ok": False, "message": "box_id fehlt"}), 400
    result = API_INSTANCE.remove_box(box_id, data.get("boxes") or [], data.get("articles") or [])
    return jsonify(result), _status(result)


@flask_app.route("/api/boxes/update", methods=["POST"])
def api_update_box():
    if API_INSTANCE is None:
        return _not_ready()
    data = request.get_json(silent=True) or {}
    result = API_INSTANCE.update_box(
        (data.get("box_id") or "").strip(), data.get("boxes") or [], data.get("changes") or {}
    )
    return jsonify(result), _status(result)


@flask_app.route("/api/labels/preview", methods=["POST"])
def api_label_preview():
    """
    Liefert das Etikett als PNG. Mit ?format=json kommt stattdessen
    {"ok": ..., "image_base64": ...} zurück.
    """
    if API_INSTANCE is None:
        return _not_ready()
    data = request.get_json(silent=True) or {}
    try:
        max_width_px = int(data["max_width_px"]) if data.get("max_width_px") else None
    except (TypeError, ValueError):
        max_width_px = None

    result = API_INSTANCE.preview_label(
        (data.get("company") or "").strip(),
        data.get("transaction") or {},
        data.get("articles") or [],
        data.get("box") or {},
        max_width_px=max_width_px,
    )
    if not result.get("ok") or request.args.get("format") == "json":
        return jsonify(result), _status(result)

    buf = BytesIO(base64.b64decode(result["image_base64"]))
    return send_file(buf, mimetype="image/png")


@flask_app.route("/api/print/box", methods=["POST"])
def api_print_box():
    if API_INSTANCE is None:
        return _not_ready()
    data = request.get_json(silent=True) or {}
    result = API_INSTANCE.print_box(
        (data.get("company") or "").strip(),
        data.get("transaction") or {},
        data.get("articles") or [],
        data.get("boxes") or [],
        (data.get("box_id") or "").strip(),
    )
    return jsonify(result), _status(result)


@flask_app.route("/api/print/batch", methods=["POST"])
def api_print_batch():
    if API_INSTANCE is None:
        return _not_ready()
    data = request.get_json(silent=True) or {}
    result = API_INSTANCE.print_batch(
        (data.get("company") or "").strip(),
        data.get("transaction") or {},
        data.get("articles") or [],
        data.get("boxes") or [],
        box_ids=data.get("box_ids"),
    )
    # Teilfehler sind ein gültiges Ergebnis, nur Vorbedingungen sind 400
    status = 400 if not result.get("ok") and not result.get("results") else 200
    return jsonify(result), status


@flask_app.route("/api/print/job/<job_id>")
def api_print_job(job_id):
    if API_INSTANCE is None:
        return _not_ready()
    result = API_INSTANCE.get_print_job(job_id)
    return jsonify(result), (200 if result.get("ok") else 404)
