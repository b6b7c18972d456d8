# app.py
from flask import Flask, request, jsonify, abort, url_for
import json, os, uuid, secrets, contextlib, tempfile
from datetime import datetime
from typing import Any, Dict, List

from job_notifications import (
    JobListing,
    Notifications,
    SettingsEnablement,
    schedule_notification,
)

try:
    import fcntl  # type: ignore[import]
except ImportError:
    fcntl = None

app = Flask(__name__)
app.secret_key = os.getenv("SECRET_KEY", "dev-only-key")

BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATA_DIR = os.environ.get("DATA_DIR", BASE_DIR)

os.makedirs(DATA_DIR, exist_ok=True)


def data_path(name: str) -> str:
    return os.path.join(DATA_DIR, name)

# ------------------------------- Paths / Config -------------------------------
LISTINGS_FILE = data_path("listings.json")
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{data_path('notifications.db')}"
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN")

NEW_LISTING_NOTICE = "admin_notice_new_listing"

notifications = Notifications(app, enablement=SettingsEnablement(DATABASE_URL))


@contextlib.contextmanager
def with_json_lock(path: str):
    lock_path = f"{path}.lock"
    os.makedirs(os.path.dirname(lock_path) or ".", exist_ok=True)
    lock_file = open(lock_path, "a+")
    try:
        if fcntl is not None:
            fcntl.flock(lock_file, fcntl.LOCK_EX)
        yield
    finally:
        try:
            if fcntl is not None:
                fcntl.flock(lock_file, fcntl.LOCK_UN)
        finally:
            lock_file.close()


def save_json_atomic(path, data):
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    with with_json_lock(path):
        fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp, path)
        finally:
            try:
                os.remove(tmp)
            except OSError:
                pass


def load_json(path, default):
    try:
        with with_json_lock(path):
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
    except FileNotFoundError:
        return default
    except json.JSONDecodeError:
        return default
    except OSError:
        return default


def load_listings() -> List[Dict[str, Any]]:
    return load_json(LISTINGS_FILE, [])


def save_listings(listings: List[Dict[str, Any]]):
    save_json_atomic(LISTINGS_FILE, listings)


def listing_to_dict(job: JobListing) -> Dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "company": job.company,
        "location": job.location,
        "description": job.description,
        "url": job.url,
        "author_email": job.author_email,
        "created_at": job.created_at.isoformat(timespec="seconds") if job.created_at else None,
    }


def submitted_data() -> Dict[str, Any]:
    if request.is_json:
        payload = request.get_json(silent=True)
        return payload if isinstance(payload, dict) else {}
    return request.form.to_dict()


def require_admin():
    # admin routes stay closed until ADMIN_TOKEN is configured
    submitted = request.headers.get("X-Admin-Token")
    if not ADMIN_TOKEN or not submitted or not secrets.compare_digest(submitted, ADMIN_TOKEN):
        abort(403)


# ----------------------------------- Jobs -----------------------------------
@app.route("/jobs", methods=["GET"])
def list_jobs():
    return jsonify(load_listings())


@app.route("/jobs/<job_id>", methods=["GET"])
def show_job(job_id):
    job = next((j for j in load_listings() if j.get("id") == job_id), None)
    if job is None:
        return jsonify({"error": "Listing not found"}), 404
    return jsonify(job)


@app.route("/jobs", methods=["POST"])
def submit_job():
    data = submitted_data()
    title = str(data.get("title") or "").strip()
    if not title:
        return jsonify({"error": "Missing title"}), 400

    job_id = uuid.uuid4().hex
    job = JobListing(
        id=job_id,
        title=title,
        company=str(data.get("company") or "").strip(),
        location=str(data.get("location") or "").strip(),
        description=str(data.get("description") or "").strip(),
        url=url_for("show_job", job_id=job_id, _external=True),
        author_email=(str(data.get("email") or "").strip() or None),
        created_at=datetime.utcnow(),
    )
    listings = load_listings()
    listings.append(listing_to_dict(job))
    save_listings(listings)

    schedule_notification(NEW_LISTING_NOTICE, {"job": job})
    return jsonify(listing_to_dict(job)), 201


# ------------------------------ Notifications -------------------------------
def notification_engine():
    return app.extensions["job_notifications"]


@app.route("/admin/notifications", methods=["GET"])
def admin_notifications():
    require_admin()
    registry = notification_engine().registry
    return jsonify([
        {
            "key": entry.key,
            "name": entry.name,
            "default_enabled": entry.default_enabled,
            "enabled": registry.is_enabled(entry),
        }
        for entry in registry.list_entries().values()
    ])


@app.route("/admin/notifications/<key>", methods=["POST"])
def admin_notification_update(key):
    require_admin()
    registry = notification_engine().registry
    entry = registry.get(key)
    if entry is None:
        return jsonify({"error": "Unknown notification"}), 404

    raw = submitted_data().get("enabled")
    if isinstance(raw, bool):
        enabled = raw
    else:
        enabled = str(raw or "").strip().lower() in {"1", "true", "yes", "on"}

    enablement = registry.enablement
    if not hasattr(enablement, "set_enabled"):
        return jsonify({"error": "Notification settings are read-only"}), 409
    enablement.set_enabled(key, enabled)
    return jsonify({"key": key, "name": entry.name, "enabled": registry.is_enabled(entry)})


if __name__ == "__main__":
    app.run(debug=os.getenv("FLASK_ENV") != "production")
