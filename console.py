"""Admin console: ad-hoc statements and stored routine provisioning.

The keyword denylist is a plain substring check on the upper-cased statement.
It blocks harmless text that happens to contain a keyword (inside a comment or
string literal) and lets through destructive statements spelled differently
(``DELETE\\nFROM``, ``DROP  TABLE``, ``ALTER TABLE ... RENAME``). It is a guard
rail for the dashboard console, not an access control mechanism.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List

from werkzeug.exceptions import BadRequest

from db import Database, drain_results, fetchall_dict


logger = logging.getLogger(__name__)

FORBIDDEN_KEYWORDS = (
	"DROP DATABASE",
	"SHUTDOWN",
	"GRANT",
	"REVOKE",
	"DELETE FROM",
	"TRUNCATE",
	"DROP TABLE",
)

SCHEMA_KEYWORDS = {"CREATE", "ALTER", "DROP", "RENAME", "TRUNCATE"}

_FIRST_WORD_RE = re.compile(r"^\s*([A-Za-z]+)")

ORDER_TOTAL_TRIGGER = "trg_update_order_total"
DISCOUNT_PROCEDURE = "GetCustomerDiscount"

PROVISION_SCRIPT = (
	f"DROP TRIGGER IF EXISTS {ORDER_TOTAL_TRIGGER}",
	f"""
	CREATE TRIGGER {ORDER_TOTAL_TRIGGER}
	AFTER INSERT ON Order_Item
	FOR EACH ROW
	BEGIN
		UPDATE `Order`
		SET TotalAmount = (
			SELECT COALESCE(SUM(Subtotal), 0) FROM Order_Item WHERE OrderID = NEW.OrderID
		)
		WHERE OrderID = NEW.OrderID;
	END
	""",
	f"DROP PROCEDURE IF EXISTS {DISCOUNT_PROCEDURE}",
	f"""
	CREATE PROCEDURE {DISCOUNT_PROCEDURE}(IN customerName VARCHAR(100))
	BEGIN
		SELECT c.CustomerID, c.Name, m.Type AS MembershipType, m.DiscountRate
		FROM Customer c
		JOIN Membership m ON c.MembershipID = m.MembershipID
		WHERE c.Name = customerName;
	END
	""",
)


class ForbiddenStatement(BadRequest):
	def __init__(self, keyword: str) -> None:
		super().__init__("This operation is not allowed for safety reasons")
		self.keyword = keyword


def check_statement(statement: Any) -> str:
	if not isinstance(statement, str) or not statement.strip():
		raise BadRequest("No query provided")
	upper = statement.upper()
	for keyword in FORBIDDEN_KEYWORDS:
		if keyword in upper:
			logger.warning("Rejected console statement containing %r", keyword)
			raise ForbiddenStatement(keyword)
	return statement


def is_schema_statement(statement: str) -> bool:
	match = _FIRST_WORD_RE.match(statement)
	return bool(match) and match.group(1).upper() in SCHEMA_KEYWORDS


def execute_statement(db: Database, statement: Any) -> Dict[str, Any]:
	statement = check_statement(statement)
	logger.info("Executing console statement: %s", statement.strip()[:200])
	with db.session() as cur:
		cur.execute(statement)
		if cur.description is not None:
			rows = fetchall_dict(cur)
			drain_results(cur)
			return {"results": rows}
		affected = cur.rowcount
		insert_id = cur.lastrowid
		drain_results(cur)

	if is_schema_statement(statement):
		return {"results": {"message": "Operation completed successfully"}}
	return {
		"results": {
			"message": f"Operation successful. Affected {affected} row(s)",
			"affectedRows": affected,
			"insertId": insert_id,
		}
	}


def provision_routines(db: Database) -> Dict[str, Any]:
	with db.session() as cur:
		for statement in PROVISION_SCRIPT:
			cur.execute(statement)
			drain_results(cur)
	logger.info("Provisioned trigger %s and procedure %s", ORDER_TOTAL_TRIGGER, DISCOUNT_PROCEDURE)
	return {
		"message": "Trigger and stored procedure created successfully",
		"trigger": ORDER_TOTAL_TRIGGER,
		"procedure": DISCOUNT_PROCEDURE,
	}


def flatten_rows(result: Any) -> List[Dict[str, Any]]:
	"""Flatten nested result sets (lists/tuples of rows) into one list of rows."""
	if result is None:
		return []
	if isinstance(result, dict):
		return [result]
	flat: List[Dict[str, Any]] = []
	if isinstance(result, Iterable) and not isinstance(result, (str, bytes)):
		for item in result:
			flat.extend(flatten_rows(item))
	return flat


def lookup_discount(db: Database, name: str) -> List[Dict[str, Any]]:
	with db.session() as cur:
		cur.callproc(DISCOUNT_PROCEDURE, (name,))
		result_sets = [fetchall_dict(cur) if cur.description is not None else []]
		while cur.nextset():
			if cur.description is not None:
				result_sets.append(fetchall_dict(cur))
	return flatten_rows(result_sets)


def list_triggers(db: Database) -> List[Dict[str, Any]]:
	with db.session() as cur:
		cur.execute("SHOW TRIGGERS")
		return fetchall_dict(cur)


def list_procedures(db: Database) -> List[Dict[str, Any]]:
	with db.session() as cur:
		cur.execute(
			"""
			SELECT ROUTINE_NAME, ROUTINE_TYPE, CREATED, LAST_ALTERED
			FROM information_schema.ROUTINES
			WHERE ROUTINE_SCHEMA = DATABASE()
			ORDER BY ROUTINE_NAME
			"""
		)
		return fetchall_dict(cur)
