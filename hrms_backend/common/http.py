# hrms_backend/common/http.py
from io import BytesIO

from flask import jsonify, make_response, send_file

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def ok(data=None, status=200, **meta):
    payload = {"success": True, "data": data}
    if meta:
        payload["meta"] = meta
    return jsonify(payload), status


def fail(message="Bad Request", status=400, code=None, detail=None, errors=None):
    err = {"message": message}
    if code: err["code"] = code
    if detail: err["detail"] = detail
    if errors: err["errors"] = errors
    return jsonify({"success": False, "error": err}), status


def html(body: str, status=200):
    """Raw HTML response (payslip preview), outside the JSON envelope."""
    resp = make_response(body, status)
    resp.headers["Content-Type"] = "text/html; charset=utf-8"
    return resp


def xlsx(data: bytes, filename: str):
    return send_file(BytesIO(data), mimetype=XLSX_MIMETYPE, as_attachment=True, download_name=filename)
