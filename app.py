from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import dicttoxml
import MySQLdb
from flask import Flask, Response, jsonify, make_response, request
from flask_cors import CORS
from werkzeug.exceptions import BadRequest, Conflict, HTTPException, NotFound

import console
import products
import queries
from config import Config
from db import Database


logger = logging.getLogger(__name__)

database = Database()


def _get_format() -> str:
	# JSON unless XML is asked for explicitly; other values are ignored.
	fmt = (request.args.get("format") or "json").strip().lower()
	return "xml" if fmt == "xml" else "json"


def _to_xml(payload: Any, root: str = "response") -> bytes:
	# dicttoxml wraps lists; make output predictable
	return dicttoxml.dicttoxml(payload, custom_root=root, attr_type=False)


def api_response(payload: Any, status: int = 200, *, root: str = "response") -> Response:
	fmt = _get_format()
	if fmt == "xml":
		xml_bytes = _to_xml(payload, root=root)
		resp = make_response(xml_bytes, status)
		resp.headers["Content-Type"] = "application/xml; charset=utf-8"
		return resp
	return make_response(jsonify(payload), status)


def error_response(message: str, status: int, *, details: Optional[Dict[str, Any]] = None) -> Response:
	payload: Dict[str, Any] = {"error": message, "status": status}
	if details:
		payload["details"] = details
	return api_response(payload, status=status, root="error")


def _json_object() -> Dict[str, Any]:
	body = request.get_json(silent=True)
	if body is None:
		return {}
	if not isinstance(body, dict):
		raise BadRequest("Request body must be a JSON object")
	return body


def _handle_db_error(exc: Exception) -> Response:
	logger.error("Database error: %s", exc, exc_info=exc)
	return error_response(str(exc), 500)


def _truthy(value: Optional[str]) -> bool:
	return (value or "").strip().lower() in {"1", "true", "yes"}


def create_app(db: Optional[Database] = None) -> Flask:
	app = Flask(__name__)
	app.config.from_object(Config)

	# Ensure env vars always take precedence (Config class attributes are evaluated at import time).
	def _env(name: str, default: Any) -> Any:
		value = os.getenv(name)
		if value is None:
			return default
		return value

	app.config["MYSQL_USER"] = _env("MYSQL_USER", app.config.get("MYSQL_USER"))
	app.config["MYSQL_PASSWORD"] = _env("MYSQL_PASSWORD", app.config.get("MYSQL_PASSWORD"))
	app.config["MYSQL_HOST"] = _env("MYSQL_HOST", app.config.get("MYSQL_HOST"))
	app.config["MYSQL_DB"] = _env("MYSQL_DB", app.config.get("MYSQL_DB"))
	app.config["MYSQL_PORT"] = int(_env("MYSQL_PORT", app.config.get("MYSQL_PORT", 3306)))
	app.config["LOG_LEVEL"] = _env("LOG_LEVEL", app.config.get("LOG_LEVEL", "INFO"))
	app.config["CORS_ORIGINS"] = _env("CORS_ORIGINS", app.config.get("CORS_ORIGINS", "*"))

	logging.basicConfig(
		level=app.config["LOG_LEVEL"],
		format="%(asctime)s %(levelname)s %(name)s: %(message)s",
	)

	CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

	db = db or database
	db.init_app(app)

	list_default = int(app.config["PRODUCT_LIST_DEFAULT_LIMIT"])
	list_max = int(app.config["PRODUCT_LIST_MAX_LIMIT"])

	@app.get("/api/health")
	def health() -> Response:
		return api_response({"status": "ok"})

	# -------------------------
	# Dashboard queries
	# -------------------------
	@app.get("/api/revenue")
	def revenue() -> Response:
		return api_response(queries.revenue_by_method(db))

	@app.get("/api/top-products")
	def top_products() -> Response:
		return api_response(queries.top_products(db))

	@app.get("/api/monthly-sales")
	def monthly_sales() -> Response:
		return api_response(queries.monthly_sales(db))

	@app.get("/api/customers")
	def customers() -> Response:
		return api_response(queries.customers_with_membership(db))

	@app.get("/api/orders")
	def orders() -> Response:
		return api_response(queries.recent_orders(db))

	# -------------------------
	# Console / routines
	# -------------------------
	@app.post("/api/execute")
	def execute() -> Response:
		body = _json_object()
		return api_response(console.execute_statement(db, body.get("query")))

	@app.post("/api/setup-triggers")
	def setup_triggers() -> Response:
		return api_response(console.provision_routines(db))

	@app.get("/api/triggers")
	def triggers() -> Response:
		return api_response(console.list_triggers(db))

	@app.get("/api/procedures")
	def procedures() -> Response:
		return api_response(console.list_procedures(db))

	@app.get("/api/discount/<name>")
	def discount(name: str) -> Response:
		return api_response(console.lookup_discount(db, name))

	# -------------------------
	# Products CRUD
	# -------------------------
	@app.get("/api/products")
	def list_products() -> Response:
		limit = products.clamp_limit(request.args.get("limit"), default=list_default, maximum=list_max)
		return api_response(products.list_products(db, limit))

	@app.post("/api/products")
	def create_product() -> Response:
		body = _json_object()
		created = products.create_product(db, body)
		payload = {"message": "Product created", **created}
		resp = api_response(payload, status=201)
		resp.headers["Location"] = f"/api/products/{created['productId']}" + _format_suffix()
		return resp

	@app.get("/api/products/<product_id>")
	def get_product(product_id: str) -> Response:
		return api_response(products.get_product(db, products.parse_product_id(product_id)))

	@app.put("/api/products/<product_id>")
	def update_product(product_id: str) -> Response:
		pid = products.parse_product_id(product_id)
		body = _json_object()
		return api_response(products.update_product(db, pid, body))

	@app.delete("/api/products/<product_id>")
	def delete_product(product_id: str) -> Response:
		pid = products.parse_product_id(product_id)
		result = products.delete_product(db, pid, cascade=_truthy(request.args.get("cascade")))
		return api_response(result.to_dict())

	# -------------------------
	# Consistent JSON/XML errors
	# -------------------------
	@app.errorhandler(BadRequest)
	def _bad_request(err: BadRequest):
		return error_response(str(err.description or "Bad request"), 400)

	@app.errorhandler(NotFound)
	def _not_found(err: NotFound):
		return error_response(str(err.description or "Not found"), 404)

	@app.errorhandler(Conflict)
	def _conflict(err: Conflict):
		hint = getattr(err, "hint", None)
		return error_response(str(err.description or "Conflict"), 409, details={"hint": hint} if hint else None)

	@app.errorhandler(MySQLdb.Error)
	def _db_error(err: MySQLdb.Error):
		return _handle_db_error(err)

	@app.errorhandler(HTTPException)
	def _http_error(err: HTTPException):
		return error_response(str(err.description or err.name), err.code or 500)

	@app.errorhandler(Exception)
	def _unhandled(err: Exception):
		logger.exception("Unhandled error")
		return error_response("Internal server error", 500)

	return app


def _format_suffix() -> str:
	if _get_format() == "xml":
		return "?format=xml"
	return ""


app = create_app()


if __name__ == "__main__":
	database.open()
	app.run(host="0.0.0.0", port=int(app.config["PORT"]), debug=False)
