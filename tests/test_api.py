# tests/test_api.py - HTTP surface: status codes, result envelopes and access rules
from app.models import UserRole
from app.models.base import utcnow
from tests.conftest import auth_headers


def staff_headers(factory, role: UserRole):
    return auth_headers(factory.staff(role), role)


class TestHealth:
    def test_health_reports_database(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"]["status"] == "healthy"

    def test_root(self, client):
        assert client.get("/").json()["version"]

    def test_run_serves_on_configured_host_and_port(self, monkeypatch):
        import uvicorn
        from app import main
        from app.core.config import settings

        calls = []
        monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
        monkeypatch.setattr(settings, "API_PORT", 8123)
        main.run()

        target, kwargs = calls[0]
        assert target == "app.main:app"
        assert kwargs["host"] == settings.API_HOST
        assert kwargs["port"] == 8123
        assert kwargs["log_level"] == "warning"


class TestFeesApi:
    def test_student_reads_own_fees(self, client, student):
        response = client.get("/api/fees/me", headers=auth_headers(student, UserRole.STUDENT))
        assert response.status_code == 200
        assert response.json()["account"]["balance"] == "80000.00"

    def test_student_cannot_read_other_student(self, client, factory, student):
        other = factory.student(full_name="Other")
        response = client.get(f"/api/fees/{other.id}", headers=auth_headers(student, UserRole.STUDENT))
        assert response.status_code == 403

    def test_bursar_payment_flow(self, client, factory, student):
        headers = staff_headers(factory, UserRole.BURSAR)

        created = client.post("/api/payments/", headers=headers, json={
            "student_id": student.id, "amount": "50000", "payment_method": "Cash",
        })
        assert created.status_code == 201
        body = created.json()
        assert body["success"] is True
        assert body["requires_approval"] is True

        pending = client.get("/api/payments/pending", headers=headers).json()
        assert [p["id"] for p in pending] == [body["payment_id"]]

        approved = client.post(f"/api/payments/{body['payment_id']}/approve", headers=headers)
        assert approved.status_code == 200
        assert approved.json()["message"] == "Payment approved successfully"

        fees = client.get(f"/api/fees/{student.id}", headers=headers).json()
        assert fees["account"]["balance"] == "30000.00"
        assert fees["account"]["payment_status"] == "Partial"

    def test_balance_exceeded_maps_to_400(self, client, factory, student):
        headers = staff_headers(factory, UserRole.BURSAR)
        response = client.post("/api/payments/", headers=headers, json={
            "student_id": student.id, "amount": "90000", "payment_method": "M-Pesa",
        })
        assert response.status_code == 400
        assert response.json()["error_code"] == "BALANCE_EXCEEDED"

    def test_teacher_cannot_list_all_fees(self, client, teacher):
        response = client.get("/api/fees/", headers=auth_headers(teacher, UserRole.TEACHER))
        assert response.status_code == 403

    def test_statement_and_discount(self, client, factory, student):
        headers = staff_headers(factory, UserRole.BURSAR)
        discount = client.post(f"/api/fees/{student.id}/discount", headers=headers,
                               json={"amount": "1000", "reason": "Bursary"})
        assert discount.status_code == 200

        statement = client.get(f"/api/fees/{student.id}/statement", headers=headers)
        assert statement.status_code == 200
        assert statement.json()["account"]["discount_amount"] == "1000.00"
        assert statement.json()["student"]["student_no"] == student.student_no

    def test_reject_payment(self, client, factory, student):
        headers = staff_headers(factory, UserRole.BURSAR)
        payment_id = client.post("/api/payments/", headers=headers, json={
            "student_id": student.id, "amount": "100", "payment_method": "Cheque",
        }).json()["payment_id"]

        missing_reason = client.post(f"/api/payments/{payment_id}/reject", headers=headers, json={"reason": ""})
        assert missing_reason.status_code == 400
        response = client.post(f"/api/payments/{payment_id}/reject", headers=headers, json={"reason": "Bounced"})
        assert response.status_code == 200


class TestRegistrationApi:
    def test_secretary_registers_student_then_student_logs_in(self, client, factory):
        headers = staff_headers(factory, UserRole.SECRETARY)
        response = client.post("/api/registration/students", headers=headers, json={
            "full_name": "Kevin Mutua", "admission_no": "ADM-7", "form": "Form 3",
            "class_name": "North", "parent_phone": "0712345678",
        })
        assert response.status_code == 201
        credentials = response.json()["login_credentials"]
        assert credentials["password"] == f"GRS/{utcnow().year}/001"

        login = client.post("/api/auth/login", json=credentials)
        assert login.status_code == 200
        assert login.json()["profile"]["extra"]["form"] == "Form 3"

    def test_duplicate_maps_to_409(self, client, factory):
        headers = staff_headers(factory, UserRole.SECRETARY)
        payload = {
            "full_name": "Kevin Mutua", "admission_no": "ADM-7", "form": "Form 3",
            "class_name": "North", "parent_phone": "0712345678",
        }
        client.post("/api/registration/students", headers=headers, json=payload)
        response = client.post("/api/registration/students", headers=headers, json=payload)
        assert response.status_code == 409

    def test_student_cannot_register_staff(self, client, student):
        response = client.post("/api/registration/staff", headers=auth_headers(student, UserRole.STUDENT), json={
            "full_name": "X", "phone_number": "0700000999", "position": "Bursar",
        })
        assert response.status_code == 403


class TestStudentsApi:
    def test_list_and_update(self, client, factory, student):
        headers = staff_headers(factory, UserRole.SECRETARY)
        listing = client.get("/api/students/", headers=headers, params={"form": student.form})
        assert listing.status_code == 200
        assert listing.json()["total"] == 1

        updated = client.patch(f"/api/students/{student.student_no}", headers=headers, json={"class_name": "West"})
        assert updated.status_code == 200
        assert updated.json()["class_name"] == "West"

    def test_student_reads_own_record_only(self, client, factory, student):
        headers = auth_headers(student, UserRole.STUDENT)
        assert client.get(f"/api/students/{student.id}", headers=headers).status_code == 200
        other = factory.student(full_name="Other")
        assert client.get(f"/api/students/{other.id}", headers=headers).status_code == 403
