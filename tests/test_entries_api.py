"""Integration tests for the /api/entries endpoints."""
from fastapi import status

from conftest import demographic_payload

ENDPOINT = "/api/entries"


class TestAuthentication:

    def test_requires_session(self, client, users):
        resp = client.get(ENDPOINT)
        assert resp.status_code == status.HTTP_401_UNAUTHORIZED
        assert resp.json()["detail"] == "Not authenticated"

    def test_rejects_bad_token(self, client, users):
        resp = client.post(ENDPOINT, json=demographic_payload(), headers={"Authorization": "Bearer nope"})
        assert resp.status_code == status.HTTP_401_UNAUTHORIZED


class TestCreate:

    def test_user_creates_entry(self, client, users, headers):
        resp = client.post(ENDPOINT, json=demographic_payload(), headers=headers["user"])

        assert resp.status_code == status.HTTP_201_CREATED
        data = resp.json()
        assert data["firstName"] == "Ama"
        assert data["dateOfBirth"] == "1990-03-14"
        assert data["createdBy"]["id"] == users["user"]
        assert data["demographicCreatedBy"]["email"] == "user@test.com"
        assert data["healthCreatedBy"] is None
        assert data["medicalCreatedBy"] is None
        assert data["bp"] is None and data["diagnosis"] is None

    def test_nurse_cannot_create(self, client, headers):
        resp = client.post(ENDPOINT, json=demographic_payload(), headers=headers["nurse"])

        assert resp.status_code == status.HTTP_403_FORBIDDEN
        body = resp.json()
        assert body["detail"] == "You do not have permission to create entries"
        assert body["errors"][0]["field"] == "demographic"

    def test_validation_errors_are_per_field(self, client, headers):
        payload = demographic_payload(gender="unknown")
        del payload["phoneNumber"]

        resp = client.post(ENDPOINT, json=payload, headers=headers["user"])

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        body = resp.json()
        assert body["detail"] == "Validation failed"
        assert {e["field"] for e in body["errors"]} == {"gender", "phoneNumber"}

    def test_body_must_be_object(self, client, headers):
        resp = client.post(ENDPOINT, json=["not", "an", "object"], headers=headers["user"])
        assert resp.status_code == status.HTTP_400_BAD_REQUEST


class TestUpdate:

    def test_doctor_updates_medical_fields(self, client, users, headers, entry):
        payload = {"id": entry["id"], "diagnosis": "Malaria", "treatment": "ACT", "firstName": "Ignored"}

        resp = client.post(ENDPOINT, json=payload, headers=headers["doctor"])

        assert resp.status_code == status.HTTP_200_OK
        data = resp.json()
        assert data["diagnosis"] == "Malaria"
        assert data["treatment"] == "ACT"
        assert data["medicalCreatedBy"]["id"] == users["doctor"]
        assert data["firstName"] == "Ama"
        assert data["demographicCreatedBy"]["id"] == users["user"]
        assert data["healthCreatedBy"] is None

    def test_nurse_then_doctor_keep_separate_attribution(self, client, users, headers, entry):
        client.post(ENDPOINT, json={"id": entry["id"], "bp": "130/85", "temp": "37.2", "weight": 62},
                    headers=headers["nurse"])
        client.post(ENDPOINT, json={"id": entry["id"], "diagnosis": "Hypertension"}, headers=headers["doctor"])

        data = client.get(f"{ENDPOINT}/{entry['id']}", headers=headers["user"]).json()
        assert data["bp"] == "130/85"
        assert data["temp"] == 37.2
        assert data["healthCreatedBy"]["id"] == users["nurse"]
        assert data["medicalCreatedBy"]["id"] == users["doctor"]
        assert data["createdBy"]["id"] == users["user"]

    def test_nurse_supplying_medical_only_is_forbidden(self, client, headers, entry):
        resp = client.post(ENDPOINT, json={"id": entry["id"], "diagnosis": "Flu"}, headers=headers["nurse"])

        assert resp.status_code == status.HTTP_403_FORBIDDEN
        assert resp.json()["errors"] == [
            {"field": "medical", "message": "Role 'nurse' cannot write medical fields"}
        ]

    def test_invalid_health_values_rejected(self, client, headers, entry):
        resp = client.post(ENDPOINT, json={"id": entry["id"], "weight": "heavy"}, headers=headers["nurse"])

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert resp.json()["errors"][0]["field"] == "weight"

    def test_boolean_measurements_rejected(self, client, headers, entry):
        resp = client.post(ENDPOINT, json={"id": entry["id"], "temp": True, "weight": False},
                           headers=headers["nurse"])

        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert {e["field"] for e in resp.json()["errors"]} == {"temp", "weight"}
        assert client.get(f"{ENDPOINT}/{entry['id']}", headers=headers["nurse"]).json()["temp"] is None

    def test_update_missing_entry(self, client, headers):
        resp = client.post(ENDPOINT, json={"id": 9999, "diagnosis": "Flu"}, headers=headers["doctor"])
        assert resp.status_code == status.HTTP_404_NOT_FOUND
        assert resp.json()["detail"] == "Entry not found"


class TestRead:

    def test_get_entry(self, client, headers, entry):
        resp = client.get(f"{ENDPOINT}/{entry['id']}", headers=headers["doctor"])
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json()["surname"] == "Mensah"

    def test_get_missing_entry(self, client, headers):
        resp = client.get(f"{ENDPOINT}/12345", headers=headers["doctor"])
        assert resp.status_code == status.HTTP_404_NOT_FOUND

    def test_list_with_filters_and_pagination(self, client, headers):
        client.post(ENDPOINT, json=demographic_payload(), headers=headers["user"])
        client.post(ENDPOINT, json=demographic_payload(firstName="Kofi", gender="male", occupation="Fisherman"),
                    headers=headers["user"])
        client.post(ENDPOINT, json=demographic_payload(firstName="Yaw", gender="male"), headers=headers["admin"])

        resp = client.get(ENDPOINT, params={"gender": "male", "limit": 1}, headers=headers["nurse"])

        assert resp.status_code == status.HTTP_200_OK
        body = resp.json()
        assert body["pagination"] == {"page": 1, "limit": 1, "total": 2, "totalPages": 2}
        assert len(body["entries"]) == 1
        assert body["entries"][0]["gender"] == "male"

        found = client.get(ENDPOINT, params={"search": "fisher"}, headers=headers["nurse"]).json()
        assert [e["firstName"] for e in found["entries"]] == ["Kofi"]

    def test_list_age_and_weight_filters(self, client, headers):
        client.post(ENDPOINT, json=demographic_payload(dateOfBirth="1950-01-01", weight=55), headers=headers["admin"])
        client.post(ENDPOINT, json=demographic_payload(dateOfBirth="2015-01-01", weight=20), headers=headers["admin"])

        old = client.get(ENDPOINT, params={"minAge": 60}, headers=headers["user"]).json()
        assert [e["dateOfBirth"] for e in old["entries"]] == ["1950-01-01"]

        light = client.get(ENDPOINT, params={"maxWeight": 30}, headers=headers["user"]).json()
        assert [e["weight"] for e in light["entries"]] == [20.0]

    def test_invalid_gender_filter(self, client, headers):
        resp = client.get(ENDPOINT, params={"gender": "other"}, headers=headers["user"])
        assert resp.status_code == status.HTTP_400_BAD_REQUEST
        assert resp.json()["errors"][0]["field"] == "gender"


class TestDashboard:

    def _seed(self, client, headers):
        first = client.post(ENDPOINT, json=demographic_payload(bp="120/80", weight=60, temp=37,
                                                               diagnosis="Malaria", treatment="ACT"),
                            headers=headers["admin"]).json()
        client.post(ENDPOINT, json=demographic_payload(gender="male", weight=80, diagnosis="Typhoid"),
                    headers=headers["admin"])
        client.post(ENDPOINT, json=demographic_payload(), headers=headers["user"])
        return first

    def test_stats(self, client, headers):
        self._seed(client, headers)

        resp = client.get(f"{ENDPOINT}/stats", headers=headers["doctor"])

        assert resp.status_code == status.HTTP_200_OK
        data = resp.json()
        assert data["totalEntries"] == 3
        assert data["genderDistribution"] == [{"gender": "female", "count": 2}, {"gender": "male", "count": 1}]
        assert data["diagnosisDistribution"] == [
            {"diagnosis": "Malaria", "count": 1},
            {"diagnosis": "Typhoid", "count": 1},
        ]
        assert data["averageWeight"] == 70.0
        assert data["averageTemp"] == 37.0

    def test_stats_filtered(self, client, headers):
        self._seed(client, headers)
        data = client.get(f"{ENDPOINT}/stats", params={"diagnosis": "mal"}, headers=headers["doctor"]).json()
        assert data["totalEntries"] == 1
        assert data["averageWeight"] == 60.0

    def test_stats_without_measurements(self, client, headers):
        data = client.get(f"{ENDPOINT}/stats", headers=headers["doctor"]).json()
        assert data["totalEntries"] == 0
        assert data["averageWeight"] is None

    def test_analytics(self, client, headers):
        self._seed(client, headers)

        resp = client.get(f"{ENDPOINT}/analytics", params={"gender": "female"}, headers=headers["nurse"])

        assert resp.status_code == status.HTTP_200_OK
        data = resp.json()
        assert data["totalEntries"] == 2
        assert len(data["ageDistribution"]) == 5
        assert sum(b["count"] for b in data["ageDistribution"]) == 2
        assert [p["systolic"] for p in data["bpVsAge"]] == [120]
        assert data["crossTabulations"]["diagnosisByGender"] == {"Malaria": {"female": 1}}

    def test_export(self, client, headers):
        self._seed(client, headers)

        resp = client.get(f"{ENDPOINT}/export.xlsx", headers=headers["user"])

        assert resp.status_code == status.HTTP_200_OK
        assert resp.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert resp.content[:2] == b"PK"
