"""Weather cities service: Flask JSON API over the cache and refresh core."""

import logging

from flask import Flask, jsonify, request

from config import HOST, PORT, SUPPORTED_LOCALES, UNITS, THEMES
from models import BusyToken

log = logging.getLogger(__name__)

_ADD_STATUS_CODES = {"added": 201, "exists": 200, "max_cities": 409}
_REFRESH_STATUS_CODES = {"refreshed": 200, "fresh": 200, "throttled": 429, "not_found": 404}


def _add_response(result):
    if result.status == "error":
        code = 409 if result.error == "operation_in_progress" else 502
    else:
        code = _ADD_STATUS_CODES[result.status]
    return jsonify(result.to_dict()), code


def _coords(data):
    """(lat, lon) from a JSON body, or None if missing/invalid."""
    try:
        lat = float(data["lat"])
        lon = float(data["lon"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        return None
    return lat, lon


def create_app(services=None):
    """Build the Flask app around ``services`` (a fresh set if omitted)."""
    if services is None:
        from services import build_services
        services = build_services()

    app = Flask(__name__)
    app.extensions["weather_services"] = services
    actions = services.actions

    def city_list():
        return [actions.display_city(c) for c in services.store.cities]

    # ── Reads ─────────────────────────────────────────────────────────

    @app.route("/api/state")
    def api_state():
        """Everything the UI renders from, in one response."""
        return jsonify({
            "cities": city_list(),
            "current_index": services.store.current_index,
            "auto_location_city_id": services.store.auto_location_city_id,
            "busy": services.busy.snapshot(),
            "pending_updates": [p.to_dict() for p in services.refresher.pending_updates()],
            "toasts": [t.to_dict() for t in services.toasts.toasts()],
            "preferences": services.preferences.to_dict(),
        })

    @app.route("/api/cities")
    def api_cities():
        return jsonify({"cities": city_list(), "current_index": services.store.current_index})

    # ── City actions ──────────────────────────────────────────────────

    @app.route("/api/cities", methods=["POST"])
    def api_add_city():
        data = request.get_json(silent=True) or {}
        coords = _coords(data)
        if coords is None or not data.get("name"):
            return jsonify({"error": "lat, lon and name required"}), 400
        unit = data.get("unit")
        if unit is not None and unit not in UNITS:
            return jsonify({"error": f"unit must be one of {', '.join(UNITS)}"}), 400
        result = actions.add_city(
            coords[0], coords[1], data["name"],
            country=data.get("country"), city_id=data.get("id"), unit=unit,
        )
        return _add_response(result)

    @app.route("/api/cities/<city_id>", methods=["DELETE"])
    def api_remove_city(city_id):
        if not actions.remove_city(city_id):
            return jsonify({"error": "City not found"}), 404
        return jsonify({"ok": True, "current_index": services.store.current_index})

    @app.route("/api/cities/<city_id>/refresh", methods=["POST"])
    def api_refresh_city(city_id):
        force = request.args.get("force", "").lower() in ("1", "true", "yes")
        result = actions.refresh_city(city_id, force=force)
        if result.status == "error":
            code = 409 if result.error == "operation_in_progress" else 502
        else:
            code = _REFRESH_STATUS_CODES[result.status]
        return jsonify(result.to_dict()), code

    @app.route("/api/cities/next", methods=["POST"])
    def api_next_city():
        services.store.next_city()
        return jsonify({"current_index": services.store.current_index})

    @app.route("/api/cities/prev", methods=["POST"])
    def api_prev_city():
        services.store.prev_city()
        return jsonify({"current_index": services.store.current_index})

    @app.route("/api/current-index", methods=["POST"])
    def api_current_index():
        data = request.get_json(silent=True) or {}
        if "city_id" in data:
            if not services.store.set_current_city(data["city_id"]):
                return jsonify({"error": "City not found"}), 404
        elif isinstance(data.get("index"), int):
            services.store.set_current_index(data["index"])
        else:
            return jsonify({"error": "index or city_id required"}), 400
        return jsonify({"current_index": services.store.current_index})

    @app.route("/api/current-location", methods=["POST"])
    def api_current_location():
        data = request.get_json(silent=True) or {}
        coords = _coords(data)
        if coords is None:
            return jsonify({"error": "lat and lon required"}), 400
        return _add_response(actions.add_current_location(*coords))

    @app.route("/api/cities/load", methods=["POST"])
    def api_load_cities():
        """Hydrate from the account's saved cities."""
        data = request.get_json(silent=True)
        if not data or not isinstance(data.get("cities"), list):
            return jsonify({"error": "cities required"}), 400
        try:
            services.store.load_from_server(data)
        except (KeyError, TypeError, ValueError) as e:
            return jsonify({"error": f"Invalid city payload: {e}"}), 400
        return jsonify({"count": len(services.store), "current_index": services.store.current_index})

    # ── Background updates ────────────────────────────────────────────

    @app.route("/api/updates")
    def api_updates():
        return jsonify([p.to_dict() for p in services.refresher.pending_updates()])

    @app.route("/api/updates/<city_id>/apply", methods=["POST"])
    def api_apply_update(city_id):
        if not services.refresher.apply_background_update(city_id):
            return jsonify({"error": "No pending update"}), 404
        return jsonify({"ok": True})

    @app.route("/api/updates/<city_id>/dismiss", methods=["POST"])
    def api_dismiss_update(city_id):
        if not services.refresher.dismiss_background_update(city_id):
            return jsonify({"error": "No pending update"}), 404
        return jsonify({"ok": True})

    # ── Busy scopes ───────────────────────────────────────────────────

    @app.route("/api/busy")
    def api_busy():
        return jsonify(services.busy.snapshot())

    @app.route("/api/busy", methods=["POST"])
    def api_begin_busy():
        data = request.get_json(silent=True) or {}
        scope = data.get("scope")
        if not scope:
            return jsonify({"error": "scope required"}), 400
        status = data.get("status")
        if status is not None and not (isinstance(status, dict) and status.get("key")):
            return jsonify({"error": "status must be {key, values}"}), 400
        token = services.busy.begin_busy(
            scope, data.get("key"), blocking=bool(data.get("blocking")), status=status,
        )
        return jsonify({"token": token.handle}), 201

    @app.route("/api/busy/<int:handle>", methods=["DELETE"])
    def api_end_busy(handle):
        services.busy.end_busy(BusyToken(handle))
        return jsonify(services.busy.snapshot())

    # ── Toasts ────────────────────────────────────────────────────────

    @app.route("/api/toasts")
    def api_toasts():
        return jsonify([t.to_dict() for t in services.toasts.toasts()])

    @app.route("/api/toasts/<int:toast_id>", methods=["DELETE"])
    def api_hide_toast(toast_id):
        services.toasts.hide_toast(toast_id)
        return jsonify({"ok": True})

    # ── Diagnostics / settings ────────────────────────────────────────

    @app.route("/api/cache/stats")
    def api_cache_stats():
        return jsonify(services.cache.stats())

    @app.route("/api/settings")
    def api_settings():
        return jsonify(services.preferences.to_dict())

    @app.route("/api/settings", methods=["POST"])
    def api_save_settings():
        data = request.get_json(silent=True) or {}
        locale, unit, theme = data.get("locale"), data.get("unit"), data.get("theme")
        if locale is not None and locale not in SUPPORTED_LOCALES:
            return jsonify({"error": "unsupported locale"}), 400
        if unit is not None and unit not in UNITS:
            return jsonify({"error": "unsupported unit"}), 400
        if theme is not None and theme not in THEMES:
            return jsonify({"error": "unsupported theme"}), 400
        prefs = actions.update_preferences(locale=locale, unit=unit, theme=theme)
        return jsonify(prefs.to_dict())

    return app


# ── Startup ───────────────────────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    from services import build_services

    services = build_services()
    services.start()
    app = create_app(services)

    log.info("Starting weather cities service on port %d", PORT)
    try:
        app.run(host=HOST, port=PORT, debug=False)
    finally:
        services.stop()
