import unittest
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy import delete

from tests.base import Person, Tag, make_engine, make_session_factory

from crudkit.core.security import create_token
from crudkit.db.session import get_db
from crudkit.main import create_app
from crudkit.services.schema import ColumnRegistry


class CrudApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = make_engine()
        cls.SessionLocal = make_session_factory(cls.engine)
        cls.app = create_app({"people": Person, "tags": Tag}, registry=ColumnRegistry())

        def override_get_db():
            db = cls.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        cls.app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(cls.app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        cls.app.dependency_overrides.clear()
        cls.engine.dispose()

    def tearDown(self):
        with self.SessionLocal() as db:
            db.execute(delete(Person))
            db.execute(delete(Tag))
            db.commit()

    def _create(self, **payload):
        response = self.client.post("/api/people", json=payload)
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()["data"]

    def test_create_returns_envelope(self):
        response = self.client.post("/api/people", json={"name": "john", "age": "30", "active": "yes"})
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["code"], 0)
        self.assertEqual(body["message"], "OK")
        self.assertGreater(body["data"]["id"], 0)
        self.assertEqual(body["data"]["age"], 30)
        self.assertIs(body["data"]["active"], True)

    def test_partial_update(self):
        created = self._create(name="john", age=30, status=1)
        response = self.client.post("/api/people", json={"id": created["id"], "age": 31})
        self.assertEqual(response.status_code, 200)

        listing = self.client.get("/api/people", params={"id": created["id"]}).json()["data"]
        self.assertEqual(listing["total"], 1)
        row = listing["list"][0]
        self.assertEqual(row["age"], 31)
        self.assertEqual(row["name"], "john")
        self.assertEqual(row["status"], 1)

    def test_unknown_field_is_rejected(self):
        response = self.client.post("/api/people", json={"name": "john", "salary": 10})
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["code"], 400)
        self.assertIn("salary", body["message"])
        self.assertEqual(body["data"], {})

    def test_uncoercible_field_is_rejected(self):
        response = self.client.post("/api/people", json={"name": "john", "age": "old"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("age", response.json()["message"])

    def test_non_object_body_is_rejected(self):
        response = self.client.post("/api/people", json=[1, 2])
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], 400)

    def test_list_filters_orders_and_pages(self):
        for idx in range(7):
            self._create(name=f"john {idx}", age=20 + idx, status=1)
        self._create(name="mary", age=50, status=1)

        response = self.client.get(
            "/api/people",
            params=[("page", "2"), ("size", "3"), ("name__like", "john"), ("order", "-age"), ("bogus__gte", "1")],
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(data["page"], 2)
        self.assertEqual(data["size"], 3)
        self.assertEqual(data["total"], 7)
        self.assertEqual([row["age"] for row in data["list"]], [23, 22, 21])

    def test_list_clamps_non_positive_paging(self):
        response = self.client.get("/api/people", params={"page": "0", "size": "-1"})
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual((data["page"], data["size"]), (1, 10))

    def test_list_rejects_non_integer_paging(self):
        response = self.client.get("/api/people", params={"page": "two"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("page", response.json()["message"])

    def test_delete(self):
        created = self._create(name="john")
        response = self.client.delete("/api/people", params={"id": str(created["id"])})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"], {"id": str(created["id"])})

        again = self.client.delete("/api/people", params={"id": str(created["id"])})
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json()["code"], 404)

    def test_delete_requires_id(self):
        response = self.client.delete("/api/people")
        self.assertEqual(response.status_code, 400)

    def test_string_primary_key_resource(self):
        with self.SessionLocal() as db:
            db.add(Tag(code="007", label="bond"))
            db.commit()

        # A non-empty key always means update.
        response = self.client.post("/api/tags", json={"code": "007", "label": "james"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["code"], "007")

        listing = self.client.get("/api/tags", params={"code": "007"}).json()["data"]
        self.assertEqual(listing["total"], 1)
        self.assertEqual(listing["list"][0]["label"], "james")

        response = self.client.delete("/api/tags", params={"id": "007"})
        self.assertEqual(response.status_code, 200)

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["status"], "ok")


class ProtectedCrudApiTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = make_engine()
        cls.SessionLocal = make_session_factory(cls.engine)
        cls.app = create_app({"people": Person}, registry=ColumnRegistry(), require_auth=True)

        def override_get_db():
            db = cls.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        cls.app.dependency_overrides[get_db] = override_get_db
        cls.client = TestClient(cls.app)

    @classmethod
    def tearDownClass(cls):
        cls.client.close()
        cls.app.dependency_overrides.clear()
        cls.engine.dispose()

    def test_missing_token(self):
        response = self.client.get("/api/people")
        self.assertEqual(response.status_code, 401)
        body = response.json()
        self.assertEqual(body["code"], 401)
        self.assertEqual(body["message"], "missing bearer token")

    def test_invalid_token(self):
        response = self.client.get("/api/people", headers={"Authorization": "Bearer nope"})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["message"], "invalid token")

    def test_valid_token(self):
        token = create_token("user-1", timedelta(minutes=5))
        response = self.client.get("/api/people", headers={"Authorization": f"Bearer {token}"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["data"]["total"], 0)

    def test_health_is_public(self):
        self.assertEqual(self.client.get("/health").status_code, 200)


if __name__ == "__main__":
    unittest.main()
