from __future__ import annotations

import os
import sys

from flask import Flask, jsonify, request

from linkage import Drive, UnitScale
from linkage.extensions import db, migrate
from linkage.library import RequestError, build_model, json_body, mechanisms_bp, run_simulation, solver_config
from linkage.logging_utils import get_logger
from linkage.model import Model
from linkage.units import UNIT_SYSTEMS

logger = get_logger(__name__)


def create_app(config_object: object | str | None = None) -> Flask:
    """Application factory with optional config object."""
    app = Flask(__name__)

    # --- Configuration ------------------------------------------------
    config_object = config_object or os.environ.get("FLASK_CONFIG", "config.DevelopmentConfig")

    if isinstance(config_object, str):
        sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
        from werkzeug.utils import import_string

        config_object = import_string(config_object)

    app.config.from_object(config_object)

    # --- Initialize extensions ----------------------------------------
    db.init_app(app)
    migrate.init_app(app, db)

    app.register_blueprint(mechanisms_bp)

    @app.errorhandler(RequestError)
    def handle_request_error(e: RequestError):
        logger.info("Rejected %s %s: %s", request.method, request.path, e)
        return jsonify(e.payload), e.status

    # --- Routes -------------------------------------------------------
    @app.post("/simulate")
    def simulate_endpoint():
        """Simulate a posted mechanism and return its frames."""
        data = json_body()
        model = build_model(data.get("model"))
        return jsonify(run_simulation(model, data))

    @app.post("/validate")
    def validate_endpoint():
        """Validate a mechanism without simulating it."""
        data = json_body().get("model")
        if not isinstance(data, dict):
            raise RequestError({"error": "model-required"})
        try:
            model = Model.from_dict(data, solver_config()).init()
        except (ValueError, TypeError) as e:
            raise RequestError({"error": str(e)})
        return jsonify({"valid": model.valid, "dof": model.dof, "messages": [m.as_dict() for m in model.messages]})

    @app.get("/drives")
    def list_drives():
        return jsonify({"drives": Drive.names()})

    @app.get("/units/info")
    def get_unit_info():
        """Get unit conversion information for a unit system."""
        unit_system = request.args.get("unit_system", "metric")
        if unit_system not in UNIT_SYSTEMS:
            unit_system = "metric"
        units = UnitScale(solver_config().m_u, unit_system)
        return jsonify({"unit_system": unit_system, "m_u": units.m_u, "conversions": units.conversion_info()})

    @app.post("/units/convert")
    def convert_units():
        """Convert values between SI and display units."""
        data = json_body()
        unit_system = data.get("unit_system", "metric")
        if unit_system not in UNIT_SYSTEMS:
            raise RequestError({"error": "Invalid unit_system. Must be 'metric' or 'imperial'"})
        units = UnitScale(solver_config().m_u, unit_system)

        values = data.get("values", [])
        if not isinstance(values, list):
            raise RequestError({"error": "values must be a list"})
        conversions = []
        for item in values:
            if not isinstance(item, dict):
                raise RequestError({"error": "Each value must be an object"})
            unit_type = item.get("unit_type")
            value = item.get("value")
            direction = item.get("direction", "to_display")  # "to_display" or "from_display"

            if not unit_type or value is None:
                continue
            try:
                if direction == "to_display":
                    display_value, symbol = units.convert_to_display(value, unit_type)
                    conversions.append({"unit_type": unit_type, "si_value": value, "display_value": display_value, "symbol": symbol})
                else:  # from_display
                    si_value = units.convert_from_display(value, unit_type)
                    symbol = units.get_preferred_unit(unit_type)
                    conversions.append({"unit_type": unit_type, "display_value": value, "si_value": si_value, "symbol": symbol})
            except KeyError:
                raise RequestError({"error": f"Unknown unit type '{unit_type}'"})
            except TypeError:
                raise RequestError({"error": f"Invalid value for '{unit_type}'"})

        return jsonify({"unit_system": unit_system, "conversions": conversions})

    return app


app = create_app()

if __name__ == "__main__":
    app.run(debug=True, host="0.0.0.0", port=5000)
