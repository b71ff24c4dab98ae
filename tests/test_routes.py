import unittest

import MySQLdb

from app import create_app
from fakes import make_database


RICE = {"ProductID": 7, "ProductName": "Rice", "Price": 40, "CategoryID": 1, "SupplierID": 1}


class RouteTests(unittest.TestCase):
	def setUp(self):
		self.db, self.conn = make_database()
		self.app = create_app(self.db)
		self.app.config["TESTING"] = True
		self.client = self.app.test_client()

	def test_health(self):
		resp = self.client.get("/api/health")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json(), {"status": "ok"})

	def test_read_endpoints_return_bare_arrays(self):
		self.conn.on("SELECT", rows=[{"x": 1}])
		for path in (
			"/api/revenue",
			"/api/top-products",
			"/api/monthly-sales",
			"/api/customers",
			"/api/orders",
			"/api/triggers",
			"/api/procedures",
		):
			resp = self.client.get(path)
			self.assertEqual(resp.status_code, 200, path)
			self.assertIsInstance(resp.get_json(), list, path)

	def test_storage_error_is_500_with_message(self):
		self.conn.on("FROM PAYMENT", error=MySQLdb.OperationalError(2006, "MySQL server has gone away"))
		resp = self.client.get("/api/revenue")
		self.assertEqual(resp.status_code, 500)
		body = resp.get_json()
		self.assertIn("gone away", body["error"])
		self.assertEqual(body["status"], 500)

	def test_xml_formatting(self):
		self.conn.on("FROM PRODUCT ORDER BY", rows=[RICE])
		resp = self.client.get("/api/products?format=xml")
		self.assertEqual(resp.status_code, 200)
		self.assertIn("application/xml", resp.headers.get("Content-Type", ""))
		resp = self.client.get("/api/products?format=csv")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json(), [RICE])

	def test_non_object_bodies_are_rejected(self):
		for path, method in (("/api/execute", self.client.post), ("/api/products", self.client.post), ("/api/products/7", self.client.put)):
			for body in (["SELECT 1"], [1, 2], "x", 5):
				resp = method(path, json=body)
				self.assertEqual(resp.status_code, 400, (path, body))
				self.assertEqual(resp.get_json()["error"], "Request body must be a JSON object")
		self.assertEqual(self.conn.log, [])

	def test_list_products_clamps_limit(self):
		self.conn.on("FROM PRODUCT ORDER BY", rows=[RICE])
		for query, expected in (("", 50), ("?limit=abc", 50), ("?limit=0", 50), ("?limit=201", 50), ("?limit=5", 5)):
			resp = self.client.get(f"/api/products{query}")
			self.assertEqual(resp.status_code, 200)
			self.assertEqual(self.conn.log[-1][2], (expected,), query)

	def test_get_product(self):
		self.conn.on("SELECT PRODUCTID, PRODUCTNAME", rows=[RICE])
		resp = self.client.get("/api/products/7")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json(), RICE)

	def test_get_product_errors(self):
		self.assertEqual(self.client.get("/api/products/abc").status_code, 400)
		self.assertEqual(self.conn.statements(), [])
		self.conn.on("SELECT PRODUCTID, PRODUCTNAME", rows=[])
		resp = self.client.get("/api/products/99")
		self.assertEqual(resp.status_code, 404)
		self.assertEqual(resp.get_json()["error"], "Product not found")

	def test_create_product(self):
		self.conn.on("INSERT INTO PRODUCT", rowcount=1, lastrowid=7)
		self.conn.on("SELECT PRODUCTID, PRODUCTNAME", rows=[RICE])
		resp = self.client.post(
			"/api/products",
			json={"ProductName": "Rice", "Price": 40, "CategoryID": 1, "SupplierID": 1},
		)
		self.assertEqual(resp.status_code, 201)
		body = resp.get_json()
		self.assertEqual(body["productId"], 7)
		self.assertEqual(body["product"], RICE)
		self.assertEqual(resp.headers["Location"], "/api/products/7")

	def test_create_product_missing_field(self):
		resp = self.client.post("/api/products", json={"ProductName": "Rice", "Price": 40, "CategoryID": 1})
		self.assertEqual(resp.status_code, 400)
		self.assertIn("SupplierID", resp.get_json()["error"])
		self.assertEqual(self.conn.statements(), [])

	def test_update_product(self):
		self.conn.on("UPDATE PRODUCT", rowcount=1)
		resp = self.client.put("/api/products/7", json={"Price": 45})
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json()["productId"], 7)

	def test_update_product_errors(self):
		self.assertEqual(self.client.put("/api/products/x", json={"Price": 45}).status_code, 400)
		self.assertEqual(self.client.put("/api/products/7", json={}).status_code, 400)
		self.assertEqual(self.conn.statements(), [])
		self.conn.on("UPDATE PRODUCT", rowcount=0)
		resp = self.client.put("/api/products/7", json={"Price": 45})
		self.assertEqual(resp.status_code, 404)
		self.assertEqual(resp.get_json()["error"], "Product not found or no change")

	def test_delete_referenced_product_is_conflict(self):
		self.conn.on("SELECT 1 FROM ORDER_ITEM", rows=[{"1": 1}])
		resp = self.client.delete("/api/products/7")
		self.assertEqual(resp.status_code, 409)
		body = resp.get_json()
		self.assertIn("cascade=true", body["details"]["hint"])
		self.assertEqual(self.conn.events(), ["begin", "rollback"])

	def test_delete_with_cascade(self):
		self.conn.on("DELETE FROM ORDER_ITEM", rowcount=2)
		self.conn.on("DELETE FROM PRODUCT", rowcount=1)
		resp = self.client.delete("/api/products/7?cascade=true")
		self.assertEqual(resp.status_code, 200)
		body = resp.get_json()
		self.assertTrue(body["cascade"])
		self.assertEqual(body["orderItemsDeleted"], 2)
		self.assertEqual(self.conn.events(), ["begin", "commit"])

	def test_delete_missing_product_reports_nothing_deleted(self):
		self.conn.on("SELECT 1 FROM ORDER_ITEM", rows=[])
		self.conn.on("DELETE FROM PRODUCT", rowcount=0)
		resp = self.client.delete("/api/products/404")
		self.assertEqual(resp.status_code, 200)
		body = resp.get_json()
		self.assertEqual(body["productsDeleted"], 0)
		self.assertEqual(body["message"], "No product deleted")

	def test_delete_invalid_id(self):
		self.assertEqual(self.client.delete("/api/products/-3").status_code, 400)
		self.assertEqual(self.conn.log, [])

	def test_execute_endpoint(self):
		resp = self.client.post("/api/execute", json={})
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(resp.get_json()["error"], "No query provided")

		resp = self.client.post("/api/execute", json={"query": "SELECT 'DROP TABLE' AS t"})
		self.assertEqual(resp.status_code, 400)
		self.assertEqual(self.conn.statements(), [])

		self.conn.on("ALTER TABLE PRODUCT", rowcount=0)
		resp = self.client.post("/api/execute", json={"query": "ALTER TABLE Product RENAME TO Product_old"})
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json(), {"results": {"message": "Operation completed successfully"}})

	def test_setup_triggers_and_discount(self):
		resp = self.client.post("/api/setup-triggers")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json()["procedure"], "GetCustomerDiscount")

		self.conn.on("CALL GETCUSTOMERDISCOUNT", rows=[{"Name": "Asha", "DiscountRate": 10}])
		resp = self.client.get("/api/discount/Asha")
		self.assertEqual(resp.status_code, 200)
		self.assertEqual(resp.get_json(), [{"Name": "Asha", "DiscountRate": 10}])

	def test_unknown_route_is_json_404(self):
		resp = self.client.get("/api/nope")
		self.assertEqual(resp.status_code, 404)
		self.assertEqual(resp.get_json()["status"], 404)


if __name__ == "__main__":
	unittest.main()
