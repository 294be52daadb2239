from __future__ import annotations

from flask import current_app, g, jsonify, request
from werkzeug.exceptions import RequestEntityTooLarge

from linkflow.api import api_bp
from linkflow.extensions import db
from linkflow.models import ApiToken, Bookmark, Collection, ImportJob, User
from linkflow.services.bookmark_parser import (
    count_links,
    node_to_dict,
    nodes_from_payload,
    normalize_browser,
    parse_bookmark_file,
)
from linkflow.services.errors import BookmarkImportError, ImportValidationError
from linkflow.services.import_jobs import read_import_upload, run_import_job
from linkflow.services.security import api_auth_required


def _import_error(exc: BookmarkImportError):
    return jsonify({"success": False, "error": str(exc)}), exc.status_code


def _parse_uploaded_file():
    upload = request.files.get("file")
    if not upload:
        raise ImportValidationError("file field is required")
    html = read_import_upload(
        upload,
        max_bytes=current_app.config["IMPORT_MAX_BYTES"],
        allowed_extensions=current_app.config["IMPORT_ALLOWED_EXTENSIONS"],
    )
    browser = normalize_browser(request.form.get("browser"))
    return parse_bookmark_file(html, browser), browser


def _nodes_from_request():
    raw = request.form.get("bookmarks")
    if raw is not None:
        if not raw.strip():
            raise ImportValidationError("No bookmarks provided")
        return nodes_from_payload(raw), "payload", None

    if "file" in request.files:
        nodes, browser = _parse_uploaded_file()
        if not nodes:
            raise ImportValidationError("No bookmarks found in upload.")
        return nodes, "file", browser

    raise ImportValidationError("No bookmarks provided")


@api_bp.errorhandler(RequestEntityTooLarge)
def upload_too_large(_exc):
    return jsonify({"success": False, "error": "upload too large"}), 413


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "LinkFlow"})


@api_bp.route("/auth/token", methods=["POST"])
def create_token_with_credentials():
    payload = request.get_json(silent=True) or {}
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    token_name = (payload.get("token_name") or "LinkFlow API Token").strip()

    user = User.query.filter_by(username=username).first()
    if not user or not user.is_active or not user.check_password(password):
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name, token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user_id": user.id})


@api_bp.route("/collections", methods=["GET"])
@api_auth_required
def collections_list():
    user = g.api_user
    items = (
        Collection.query.filter_by(user_id=user.id)
        .order_by(Collection.name.asc())
        .all()
    )
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks", methods=["GET"])
@api_auth_required
def bookmarks_list():
    user = g.api_user
    query = Bookmark.query.filter_by(user_id=user.id)
    collection_id = request.args.get("collection_id", type=int)
    if collection_id:
        query = query.filter_by(collection_id=collection_id)
    items = query.order_by(Bookmark.created_at.desc(), Bookmark.id.desc()).all()
    return jsonify({"items": [item.as_dict() for item in items]})


@api_bp.route("/bookmarks/import/preview", methods=["POST"])
@api_auth_required
def bookmarks_import_preview():
    try:
        nodes, browser = _parse_uploaded_file()
    except BookmarkImportError as exc:
        return _import_error(exc)
    return jsonify(
        {
            "success": True,
            "browser": browser,
            "count": count_links(nodes),
            "bookmarks": [node_to_dict(node) for node in nodes],
        }
    )


@api_bp.route("/bookmarks/import", methods=["POST"])
@api_auth_required
def bookmarks_import():
    user = g.api_user
    try:
        nodes, source, browser = _nodes_from_request()
        job, result = run_import_job(user, nodes, source=source, browser=browser)
    except BookmarkImportError as exc:
        return _import_error(exc)

    return jsonify(
        {
            "success": True,
            "count": result.created_count,
            "skipped": result.skipped_count,
            "collections_created": result.collections_created,
            "job": job.as_dict(),
        }
    )


@api_bp.route("/import/jobs/<int:job_id>", methods=["GET"])
@api_auth_required
def import_job_status(job_id: int):
    user = g.api_user
    job = ImportJob.query.filter_by(id=job_id, user_id=user.id).first()
    if not job:
        return jsonify({"error": "job not found"}), 404
    return jsonify(job.as_dict())
