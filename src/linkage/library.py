from __future__ import annotations

import math
from typing import Any, Dict, Mapping

from flask import Blueprint, abort, current_app, jsonify, request

from .config import SolverConfig
from .extensions import db
from .logging_utils import get_logger
from .model import Model
from .models import Mechanism
from .render import CommandRenderer
from .simulate import simulate
from .units import UNIT_SYSTEMS, UnitScale

logger = get_logger(__name__)

mechanisms_bp = Blueprint("mechanisms", __name__, url_prefix="/mechanisms")


class RequestError(Exception):
    """Client error carrying an HTTP status and a JSON payload."""

    def __init__(self, payload: Dict[str, Any], status: int = 400):
        super().__init__(payload.get("error"))
        self.payload = payload
        self.status = status


def solver_config() -> SolverConfig:
    return SolverConfig.from_mapping(current_app.config)


def build_model(data: Any) -> Model:
    """Create and initialize a model from a posted document; rejects invalid ones."""
    if not isinstance(data, Mapping):
        raise RequestError({"error": "model-required"})
    try:
        model = Model.from_dict(data, solver_config()).init()
    except (ValueError, TypeError) as e:
        raise RequestError({"error": str(e)})
    if not model.valid:
        logger.info("Rejected invalid model: %s", model.msg)
        raise RequestError({"error": "invalid-model", "messages": [m.as_dict() for m in model.messages]}, 422)
    return model


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def run_simulation(model: Model, params: Mapping[str, Any]) -> Dict[str, Any]:
    unit_system = params.get("unit_system", "metric")
    if unit_system not in UNIT_SYSTEMS:
        raise RequestError({"error": "Invalid unit_system. Must be 'metric' or 'imperial'"})

    dt = params.get("dt")
    if dt is None:
        dt = model.config.dt
    if not _is_number(dt) or dt <= 0:
        raise RequestError({"error": "dt must be a positive number"})

    ticks = params.get("ticks")
    if ticks is None:
        duration = params.get("duration", 1.0)
        if not _is_number(duration) or duration < 0:
            raise RequestError({"error": "duration must be a non-negative number"})
        ticks = int(round(duration / dt))
    elif not isinstance(ticks, int) or isinstance(ticks, bool):
        raise RequestError({"error": "ticks must be an integer"})
    max_ticks = current_app.config.get("SIMULATION_MAX_TICKS", 10000)
    if ticks < 0:
        raise RequestError({"error": "ticks must not be negative"})
    if ticks > max_ticks:
        raise RequestError({"error": f"At most {max_ticks} ticks allowed"})

    results = simulate(model, ticks=ticks, dt=dt)
    return results.as_dict(UnitScale(model.config.m_u, unit_system))


def json_body() -> Dict[str, Any]:
    if not request.is_json:
        raise RequestError({"error": "JSON body required"})
    data = request.get_json() or {}
    if not isinstance(data, dict):
        raise RequestError({"error": "JSON object required"})
    return data


def _get_or_404(mechanism_id: int) -> Mechanism:
    mechanism = db.session.get(Mechanism, mechanism_id)
    if not mechanism:
        abort(404)
    return mechanism


@mechanisms_bp.get("")
def list_mechanisms():
    """Return all stored mechanisms."""
    return jsonify([m.summary() for m in Mechanism.query.order_by(Mechanism.id).all()])


@mechanisms_bp.post("")
def create_mechanism():
    data = json_body()
    model = build_model(data.get("model"))
    name = data.get("name") or model.title or model.id or "Untitled"
    mechanism = Mechanism(name=name, json_blob=model.as_json(indent=None))  # type: ignore
    db.session.add(mechanism)
    db.session.commit()
    return jsonify({"id": mechanism.id, "name": mechanism.name, "dof": model.dof}), 201


@mechanisms_bp.get("/<int:mechanism_id>")
def get_mechanism(mechanism_id: int):
    mechanism = _get_or_404(mechanism_id)
    return jsonify({"id": mechanism.id, "name": mechanism.name, "model": mechanism.document})


@mechanisms_bp.put("/<int:mechanism_id>")
def update_mechanism(mechanism_id: int):
    """Rename a mechanism and/or replace its document."""
    mechanism = _get_or_404(mechanism_id)
    data = json_body()
    if "model" in data:
        mechanism.json_blob = build_model(data["model"]).as_json(indent=None)
    if data.get("name"):
        mechanism.name = data["name"]
    db.session.commit()
    return jsonify({"id": mechanism.id, "name": mechanism.name})


@mechanisms_bp.delete("/<int:mechanism_id>")
def delete_mechanism(mechanism_id: int):
    mechanism = _get_or_404(mechanism_id)
    db.session.delete(mechanism)
    db.session.commit()
    return jsonify({"status": "deleted"})


@mechanisms_bp.post("/<int:mechanism_id>/simulate")
def simulate_mechanism(mechanism_id: int):
    mechanism = _get_or_404(mechanism_id)
    params = request.get_json(silent=True) or {}
    if not isinstance(params, dict):
        raise RequestError({"error": "JSON object required"})
    model = build_model(mechanism.document)
    return jsonify(run_simulation(model, params))


@mechanisms_bp.get("/<int:mechanism_id>/scene")
def mechanism_scene(mechanism_id: int):
    """Draw commands of the assembled initial pose."""
    mechanism = _get_or_404(mechanism_id)
    model = build_model(mechanism.document)
    model.pose()
    renderer = CommandRenderer()
    model.draw(renderer)
    return jsonify({"id": mechanism.id, "valid": model.valid, **renderer.scene()})
