"""Product catalog repository.

Plain CRUD over ``Product`` plus the delete flow, which is the only operation
that spans several statements. Delete runs as an explicit sequence of
:class:`DeleteState` steps inside one transaction::

	START -> CHECK_REFERENCE -> REJECT
	START -> CHECK_REFERENCE -> DELETE_PRODUCT -> COMMIT
	START -> CASCADE_DELETE  -> DELETE_PRODUCT -> COMMIT

Any failure after START ends in ROLLBACK.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from werkzeug.exceptions import BadRequest, Conflict, NotFound

from db import Database, fetchall_dict, fetchone_dict


logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200

PRODUCT_COLUMNS = "ProductID, ProductName, Price, CategoryID, SupplierID"

# Request fields match column names; this order fixes INSERT and SET ordering.
WRITABLE_FIELDS = ("ProductName", "Price", "CategoryID", "SupplierID")

CASCADE_HINT = "Retry with ?cascade=true to delete the referencing order items first"


class ProductReferenced(Conflict):
	def __init__(self, product_id: int) -> None:
		super().__init__(f"Product {product_id} is referenced by existing order items")
		self.product_id = product_id
		self.hint = CASCADE_HINT


class DeleteState(enum.Enum):
	START = "start"
	CHECK_REFERENCE = "check_reference"
	REJECT = "reject"
	CASCADE_DELETE = "cascade_delete"
	DELETE_PRODUCT = "delete_product"
	COMMIT = "commit"
	ROLLBACK = "rollback"


@dataclass
class DeleteResult:
	product_id: int
	cascade: bool
	order_items_deleted: int = 0
	products_deleted: int = 0
	trail: List[DeleteState] = field(default_factory=list)

	def to_dict(self) -> Dict[str, Any]:
		if self.products_deleted == 0:
			message = "No product deleted"
		elif self.cascade:
			message = "Product and its order items deleted"
		else:
			message = "Product deleted"
		return {
			"message": message,
			"productId": self.product_id,
			"cascade": self.cascade,
			"orderItemsDeleted": self.order_items_deleted,
			"productsDeleted": self.products_deleted,
		}


def _parse_int(value: Any, field: str, *, minimum: Optional[int] = None) -> int:
	if isinstance(value, bool):
		raise BadRequest(f"{field} must be an integer")
	try:
		parsed = int(value)
	except (TypeError, ValueError):
		raise BadRequest(f"{field} must be an integer")
	if isinstance(value, float) and value != parsed:
		raise BadRequest(f"{field} must be an integer")
	if minimum is not None and parsed < minimum:
		raise BadRequest(f"{field} must be >= {minimum}")
	return parsed


def _parse_decimal(value: Any, field: str) -> float:
	if isinstance(value, bool):
		raise BadRequest(f"{field} must be a number")
	try:
		parsed = float(value)
	except (TypeError, ValueError):
		raise BadRequest(f"{field} must be a number")
	return parsed


def _parse_name(value: Any, field: str) -> str:
	if not isinstance(value, str) or not value.strip():
		raise BadRequest(f"{field} must be a non-empty string")
	return value.strip()


_PARSERS = {
	"ProductName": _parse_name,
	"Price": _parse_decimal,
	"CategoryID": lambda v, f: _parse_int(v, f, minimum=1),
	"SupplierID": lambda v, f: _parse_int(v, f, minimum=1),
}


def _require_mapping(payload: Any) -> None:
	if not isinstance(payload, dict):
		raise BadRequest("Request body must be a JSON object")


def parse_product_id(raw: Any) -> int:
	# Path segments arrive as strings; "12abc" and "1.5" are both rejected.
	if isinstance(raw, str) and not raw.strip().isdigit():
		raise BadRequest("Invalid product id")
	try:
		return _parse_int(raw, "product id", minimum=1)
	except BadRequest:
		raise BadRequest("Invalid product id")


def clamp_limit(raw: Any, *, default: int = DEFAULT_LIST_LIMIT, maximum: int = MAX_LIST_LIMIT) -> int:
	try:
		limit = int(raw)
	except (TypeError, ValueError):
		return default
	if limit <= 0 or limit > maximum:
		return default
	return limit


def get_product(db: Database, product_id: int) -> Dict[str, Any]:
	with db.session() as cur:
		cur.execute(f"SELECT {PRODUCT_COLUMNS} FROM Product WHERE ProductID=%s", (product_id,))
		row = fetchone_dict(cur)
	if not row:
		raise NotFound("Product not found")
	return row


def list_products(db: Database, limit: int = DEFAULT_LIST_LIMIT) -> List[Dict[str, Any]]:
	with db.session() as cur:
		cur.execute(f"SELECT {PRODUCT_COLUMNS} FROM Product ORDER BY ProductID ASC LIMIT %s", (limit,))
		return fetchall_dict(cur)


def create_product(db: Database, payload: Any) -> Dict[str, Any]:
	_require_mapping(payload)
	missing = [name for name in WRITABLE_FIELDS if payload.get(name) is None]
	if missing:
		raise BadRequest(f"Missing required fields: {', '.join(missing)}")
	values = {name: _PARSERS[name](payload[name], name) for name in WRITABLE_FIELDS}

	with db.session() as cur:
		cur.execute(
			"INSERT INTO Product (ProductName, Price, CategoryID, SupplierID) VALUES (%s,%s,%s,%s)",
			tuple(values[name] for name in WRITABLE_FIELDS),
		)
		new_id = cur.lastrowid
	logger.info("Created product %s", new_id)

	# The insert is already committed; a failed read-back still counts as success.
	product: Optional[Dict[str, Any]]
	try:
		product = get_product(db, new_id)
	except Exception:
		logger.warning("Could not read back product %s after insert", new_id, exc_info=True)
		product = None
	return {"productId": new_id, "product": product}


def update_product(db: Database, product_id: int, payload: Any) -> Dict[str, Any]:
	_require_mapping(payload)
	supplied = [name for name in WRITABLE_FIELDS if payload.get(name) is not None]
	if not supplied:
		raise BadRequest(f"Provide at least one of: {', '.join(WRITABLE_FIELDS)}")
	values = {name: _PARSERS[name](payload[name], name) for name in supplied}

	assignments = ", ".join(f"{name}=%s" for name in supplied)
	with db.session() as cur:
		cur.execute(
			f"UPDATE Product SET {assignments} WHERE ProductID=%s",
			tuple(values[name] for name in supplied) + (product_id,),
		)
		affected = cur.rowcount
	if affected == 0:
		raise NotFound("Product not found or no change")
	return {"message": "Product updated", "productId": product_id, "updated": values}


def delete_product(db: Database, product_id: int, *, cascade: bool = False) -> DeleteResult:
	result = DeleteResult(product_id=product_id, cascade=cascade)
	state = DeleteState.START

	def advance(next_state: DeleteState) -> None:
		nonlocal state
		logger.debug("delete product %s: %s -> %s", product_id, state.value, next_state.value)
		state = next_state
		result.trail.append(next_state)

	result.trail.append(state)
	try:
		with db.transaction() as cur:
			if cascade:
				advance(DeleteState.CASCADE_DELETE)
				cur.execute("DELETE FROM Order_Item WHERE ProductID=%s", (product_id,))
				result.order_items_deleted = cur.rowcount
			else:
				advance(DeleteState.CHECK_REFERENCE)
				cur.execute("SELECT 1 FROM Order_Item WHERE ProductID=%s LIMIT 1", (product_id,))
				if cur.fetchone() is not None:
					advance(DeleteState.REJECT)
					raise ProductReferenced(product_id)

			advance(DeleteState.DELETE_PRODUCT)
			cur.execute("DELETE FROM Product WHERE ProductID=%s", (product_id,))
			result.products_deleted = cur.rowcount
			advance(DeleteState.COMMIT)
	except ProductReferenced:
		advance(DeleteState.ROLLBACK)
		logger.info("Refused to delete referenced product %s", product_id)
		raise
	except Exception:
		advance(DeleteState.ROLLBACK)
		logger.warning("Delete of product %s rolled back", product_id)
		raise

	logger.info(
		"Deleted product %s (cascade=%s, order items removed=%s)",
		product_id,
		cascade,
		result.order_items_deleted,
	)
	return result
