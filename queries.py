"""Dashboard aggregates. Each function runs one fixed query and returns its rows."""

from __future__ import annotations

from typing import Any, Dict, List

from db import Database, fetchall_dict


REVENUE_BY_METHOD_SQL = """
	SELECT Method, SUM(AmountPaid) AS TotalRevenue
	FROM Payment
	GROUP BY Method
	ORDER BY TotalRevenue DESC
"""

TOP_PRODUCTS_SQL = """
	SELECT p.ProductName, SUM(oi.Quantity) AS TotalSold
	FROM Order_Item oi
	JOIN Product p ON oi.ProductID = p.ProductID
	GROUP BY p.ProductName
	ORDER BY TotalSold DESC
	LIMIT %s
"""

# Must run without params so the driver leaves the '%Y-%m' pattern alone.
MONTHLY_SALES_SQL = """
	SELECT DATE_FORMAT(OrderDate, '%Y-%m') AS Month, SUM(TotalAmount) AS MonthlySales
	FROM `Order`
	GROUP BY DATE_FORMAT(OrderDate, '%Y-%m')
	ORDER BY Month
"""

CUSTOMERS_WITH_MEMBERSHIP_SQL = """
	SELECT c.CustomerID, c.Name, m.Type AS MembershipType, m.DiscountRate
	FROM Customer c
	JOIN Membership m ON c.MembershipID = m.MembershipID
"""

RECENT_ORDERS_SQL = """
	SELECT o.OrderID, c.Name AS CustomerName, e.Name AS EmployeeName, o.TotalAmount
	FROM `Order` o
	JOIN Customer c ON o.CustomerID = c.CustomerID
	LEFT JOIN Employee e ON o.EmployeeID = e.EmployeeID
	ORDER BY o.OrderID DESC
	LIMIT %s
"""


def _run(db: Database, sql: str, params: tuple = ()) -> List[Dict[str, Any]]:
	with db.session() as cur:
		if params:
			cur.execute(sql, params)
		else:
			cur.execute(sql)
		return fetchall_dict(cur)


def revenue_by_method(db: Database) -> List[Dict[str, Any]]:
	return _run(db, REVENUE_BY_METHOD_SQL)


def top_products(db: Database, limit: int = 3) -> List[Dict[str, Any]]:
	return _run(db, TOP_PRODUCTS_SQL, (limit,))


def monthly_sales(db: Database) -> List[Dict[str, Any]]:
	return _run(db, MONTHLY_SALES_SQL)


def customers_with_membership(db: Database) -> List[Dict[str, Any]]:
	return _run(db, CUSTOMERS_WITH_MEMBERSHIP_SQL)


def recent_orders(db: Database, limit: int = 10) -> List[Dict[str, Any]]:
	return _run(db, RECENT_ORDERS_SQL, (limit,))
