"""
Showroom - HTTP API tests (FastAPI TestClient over an in-memory store)
Run: cd backend && pytest tests/test_api.py -v
"""

from config import today_local
from services.dates import add_days

from tests.conftest import SAMSUNG

EL = {"user_type": "electronics"}
FN = {"user_type": "furniture"}


def complaint_body(due_in_days=3, **overrides):
    body = {
        "customerId": "cust-1",
        "customerName": "Asha Patel",
        "customerPhone": " 9876543210 ",
        "title": "Samsung TV not turning on",
        "description": "Television shows no picture after power cut",
        "assigneeType": "service_person",
        "servicePersonName": "Ramesh",
        "servicePersonContact": "9000000001",
        "expectedResolutionDate": add_days(today_local(), due_in_days).isoformat(),
    }
    body.update(overrides)
    return body


# ═══════════════════════════════════════════════════════════════
# 1. SHELL / AUTH
# ═══════════════════════════════════════════════════════════════

class TestShell:

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_missing_token(self, client):
        response = client.get("/api/complaints", params=EL)
        assert response.status_code == 401
        assert response.json()["detail"] == "Not authenticated"

    def test_unknown_and_expired_token(self, client):
        response = client.get("/api/complaints", params=EL, headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401
        response = client.get("/api/complaints", params=EL, headers={"Authorization": "Bearer expired-token"})
        assert response.json()["detail"] == "Session expired"
        print("✓ Unknown and expired sessions rejected")

    def test_token_cannot_address_other_nodes(self, client):
        for token in ("test-token/uid", "x/../test-token"):
            response = client.get("/api/complaints", params=EL, headers={"Authorization": f"Bearer {token}"})
            assert response.status_code == 401
            assert response.json()["detail"] == "Invalid session"

    def test_unknown_user_type(self, client, auth_headers):
        response = client.get("/api/complaints", params={"user_type": "garden"}, headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["field"] == "userType"


# ═══════════════════════════════════════════════════════════════
# 2. COMPLAINTS
# ═══════════════════════════════════════════════════════════════

class TestComplaintsAPI:

    def test_create_list_get(self, client, auth_headers):
        response = client.post("/api/complaints", params=EL, json=complaint_body(), headers=auth_headers)
        assert response.status_code == 200, response.text
        complaint = response.json()["complaint"]
        assert complaint["complaintNumber"].startswith(f"ECM{today_local().year}")
        assert complaint["customerPhone"] == "9876543210"
        assert complaint["createdByName"] == "Admin"

        listing = client.get("/api/complaints", params={**EL, "status": "open"}, headers=auth_headers).json()
        assert listing["total"] == 1
        fetched = client.get(f"/api/complaints/{complaint['id']}", params=EL, headers=auth_headers).json()
        assert fetched["isOverdue"] is False

        assert client.get("/api/complaints", params=FN, headers=auth_headers).json()["total"] == 0
        print(f"✓ Complaint {complaint['complaintNumber']} created and listed")

    def test_validation_errors(self, client, auth_headers):
        response = client.post("/api/complaints", params=EL, json=complaint_body(due_in_days=-1), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["field"] == "expectedResolutionDate"

        response = client.post("/api/complaints", params=EL,
                               json=complaint_body(servicePersonContact="12345"), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["field"] == "servicePersonContact"

    def test_overdue_create_notifies_creator(self, client, auth_headers):
        response = client.post(
            "/api/complaints", params={**EL, "allow_past_due_date": "true"},
            json=complaint_body(due_in_days=-1), headers=auth_headers,
        )
        assert response.status_code == 200
        assert response.json()["complaint"]["isOverdue"] is True

        inbox = client.get("/api/complaint-notifications", params=EL, headers=auth_headers).json()
        assert len(inbox["notifications"]) == 1
        assert inbox["notifications"][0]["data"]["daysOverdue"] == 1

        stats = client.get("/api/complaint-notifications/stats", params=EL, headers=auth_headers).json()
        assert stats["overdue"] == 1
        assert stats["unread"] == 1

        client.post("/api/complaint-notifications/read-all", params=EL, headers=auth_headers)
        stats = client.get("/api/complaint-notifications/stats", params=EL, headers=auth_headers).json()
        assert stats["unread"] == 0

        result = client.post("/api/complaint-notifications/process", params=EL, json={}, headers=auth_headers).json()
        assert result["generated"] == 0
        print("✓ Overdue notification delivered once")

    def test_status_change_and_not_found(self, client, auth_headers):
        complaint = client.post("/api/complaints", params=EL, json=complaint_body(), headers=auth_headers).json()["complaint"]
        url = f"/api/complaints/{complaint['id']}"

        response = client.put(url, params=EL, json={"status": "resolved"}, headers=auth_headers)
        assert response.status_code == 400
        response = client.put(url, params=EL, json={"status": "resolved", "statusRemarks": "Fixed"}, headers=auth_headers)
        assert response.json()["complaint"]["status"] == "resolved"

        assert client.put(url, params=EL, json={}, headers=auth_headers).status_code == 400
        assert client.get("/api/complaints/missing", params=EL, headers=auth_headers).status_code == 404
        assert client.put("/api/complaints/missing", params=EL, json={"severity": "low"},
                          headers=auth_headers).status_code == 404

    def test_escalation(self, client, auth_headers):
        client.post("/api/brands", params=EL, json=SAMSUNG, headers=auth_headers)
        complaint = client.post("/api/complaints", params=EL, json=complaint_body(), headers=auth_headers).json()["complaint"]

        option = client.get(f"/api/complaints/{complaint['id']}/escalation", params=EL, headers=auth_headers).json()
        assert option["action"] == "next_level"
        assert option["target"]["contact"] == "9000000002"

        response = client.post(f"/api/complaints/{complaint['id']}/escalate", params=EL, json={}, headers=auth_headers)
        escalated = response.json()["complaint"]
        assert escalated["status"] == "escalated"
        assert escalated["servicePersonContact"] == "9000000002"

        response = client.post(f"/api/complaints/{complaint['id']}/escalate", params=EL, json={}, headers=auth_headers)
        assert response.status_code == 400
        print("✓ Escalated to L2, no default hierarchy configured")


# ═══════════════════════════════════════════════════════════════
# 3. BRANDS
# ═══════════════════════════════════════════════════════════════

class TestBrandsAPI:

    def test_brand_crud_and_detection(self, client, auth_headers):
        created = client.post("/api/brands", params=EL, json=SAMSUNG, headers=auth_headers).json()["brand"]
        detected = client.get("/api/brands/detect", params={**EL, "title": "samsung fridge noisy"},
                              headers=auth_headers).json()
        assert detected["brand"]["id"] == created["id"]

        duplicate = client.post("/api/brands", params=EL, json={"brandName": "SAMSUNG"}, headers=auth_headers)
        assert duplicate.status_code == 400

        option = client.get("/api/brands/escalation",
                            params={**EL, "current_contact": "9000000002", "brand_name": "Samsung"},
                            headers=auth_headers).json()
        assert option["atLastLevel"] is True
        assert option["action"] is None

        client.put("/api/brands/default-hierarchy", params=EL,
                   json={"name": "Head Office", "contact": "9111111111"}, headers=auth_headers)
        option = client.get("/api/brands/escalation",
                            params={**EL, "current_contact": "9000000002", "brand_name": "Samsung"},
                            headers=auth_headers).json()
        assert option["action"] == "default"

        assert client.delete(f"/api/brands/{created['id']}", params=EL, headers=auth_headers).status_code == 200
        assert client.get(f"/api/brands/{created['id']}", params=EL, headers=auth_headers).status_code == 404

    def test_furniture_rejected(self, client, auth_headers):
        response = client.post("/api/brands", params=FN, json=SAMSUNG, headers=auth_headers)
        assert response.status_code == 400
        assert client.get("/api/brands", params=FN, headers=auth_headers).json() == {"brands": []}


# ═══════════════════════════════════════════════════════════════
# 4. CUSTOMERS / EMPLOYEES / SALES / STATS
# ═══════════════════════════════════════════════════════════════

class TestBackOfficeAPI:

    def test_customer_duplicate_phone(self, client, auth_headers):
        body = {"name": "Asha", "phone": "9876543210", "customerType": "retailer", "category": "individual"}
        first = client.post("/api/customers", params=EL, json=body, headers=auth_headers)
        assert first.status_code == 200
        second = client.post("/api/customers", params=EL, json={**body, "name": "Other"}, headers=auth_headers)
        assert second.status_code == 400
        assert second.json()["field"] == "phone"

        check = client.get("/api/customers/check-phone", params={**EL, "phone": "9876543210"},
                           headers=auth_headers).json()
        assert check["duplicate"] is True
        print("✓ Duplicate customer phone rejected")

    def test_sale_payment_and_history(self, client, auth_headers):
        body = {
            "customerId": "cust-1",
            "customerName": "Asha",
            "customerState": "Gujarat",
            "items": [{"name": "Sofa", "price": 10000}],
        }
        sale = client.post("/api/sales", params=FN, json=body, headers=auth_headers).json()["sale"]
        assert sale["invoiceNumber"] == "FN_GST_001"
        assert sale["grandTotal"] == 11800

        response = client.post(f"/api/sales/{sale['id']}/payments", params=FN,
                               json={"amount": 11800, "paymentMethod": "card"}, headers=auth_headers)
        assert response.json()["sale"]["fullyPaid"] is True
        assert client.post(f"/api/sales/{sale['id']}/payments", params=FN,
                           json={"amount": 0}, headers=auth_headers).status_code == 422

        history = client.get("/api/customers/cust-1/history", params=FN, headers=auth_headers).json()
        assert [s["id"] for s in history["sales"]] == [sale["id"]]
        assert history["quotations"] == []

    def test_stats_period_validation(self, client, auth_headers):
        ok = client.get("/api/stats/sales", params={**EL, "period": "weekly"}, headers=auth_headers)
        assert ok.status_code == 200
        assert ok.json()["summary"]["totalSales"] == 0
        bad = client.get("/api/stats/sales", params={**EL, "period": "yearly"}, headers=auth_headers)
        assert bad.status_code == 400

    def test_employee_analytics_export(self, client, auth_headers):
        body = {"name": "Ravi Kumar", "phone": "9876543210", "role": "sales", "department": "sales",
                "joinedDate": "2024-01-10"}
        employee = client.post("/api/employees", params=EL, json=body, headers=auth_headers).json()["employee"]
        assert employee["employeeId"] == "SALRK001"

        by_code = client.get("/api/employees/SALRK001", params=EL, headers=auth_headers)
        assert by_code.json()["id"] == employee["id"]

        response = client.get("/api/employees/analytics/export",
                              params={**EL, "year": 2025, "month": 6}, headers=auth_headers)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "employee_sales_2025_06.csv" in response.headers["content-disposition"]
        assert '"Ravi Kumar"' in response.text

        bad = client.get("/api/employees/analytics/monthly", params={**EL, "year": 2025, "month": 13},
                         headers=auth_headers)
        assert bad.status_code == 400
