from flask import Flask, request, jsonify
from flask_cors import CORS
import polytac


def create_app(config=None):
    app = Flask(__name__)
    app.config.update(
        POLYTAC_MAX_DEPTH=polytac.MAX_DEPTH,
        POLYTAC_EXTENDED=False,
    )
    app.config.from_prefixed_env()  # e.g. FLASK_POLYTAC_MAX_DEPTH=50
    if config:
        app.config.update(config)
    CORS(app)  # allow cross-origin requests

    def options(data):
        extended = data.get("extended", app.config["POLYTAC_EXTENDED"])
        return bool(extended), int(app.config["POLYTAC_MAX_DEPTH"])

    def request_data():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return None
        return data

    @app.route("/compile", methods=["POST"])
    def compile_code():
        data = request_data()
        if data is None:
            return jsonify({"errors": ["Request body must be a JSON object"]}), 400
        code = data.get("code", "")
        extended, max_depth = options(data)
        try:
            result = polytac.compile_source(code, extended=extended, max_depth=max_depth)
            if result['errors']:
                app.logger.info("compile rejected %r: %s", code, result['errors'][0])
            return jsonify(result)
        except Exception as e:
            app.logger.exception("unexpected failure compiling %r", code)
            return jsonify({
                "tac": [],
                "instructions": [],
                "result": None,
                "variables": [],
                "errors": [f"Unexpected error: {str(e)}"],
            }), 500

    @app.route("/evaluate", methods=["POST"])
    def evaluate_code():
        data = request_data()
        if data is None:
            return jsonify({"errors": ["Request body must be a JSON object"]}), 400
        code = data.get("code", "")
        variables = data.get("variables") or {}
        if not isinstance(variables, dict):
            return jsonify({"errors": ["'variables' must be an object"]}), 400
        extended, max_depth = options(data)
        try:
            result = polytac.evaluate_source(code, variables, extended=extended, max_depth=max_depth)
            if result['errors']:
                app.logger.info("evaluate rejected %r: %s", code, result['errors'][0])
            return jsonify(result)
        except Exception as e:
            app.logger.exception("unexpected failure evaluating %r", code)
            return jsonify({
                "tac": [],
                "steps": [],
                "value": None,
                "display": None,
                "errors": [f"Unexpected error: {str(e)}"],
            }), 500

    return app


app = create_app()

if __name__ == "__main__":
    app.run(debug=True)
