"""Small request/response helpers shared by the blueprints."""
from flask import jsonify, request


def request_data() -> dict:
    """JSON body if present, otherwise form fields."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def reply(ok: bool, message: str, status: int = None, **extra):
    """Standard `{ok, message, ...}` payload for command endpoints."""
    body = {"ok": ok, "message": message}
    body.update(extra)
    return jsonify(body), status or (200 if ok else 400)


def id_list(raw) -> list:
    """Accept [1, 2], "1,2" or repeated query args."""
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        items = raw
    else:
        items = str(raw).split(",")
    return [str(x).strip() for x in items if str(x).strip()]
