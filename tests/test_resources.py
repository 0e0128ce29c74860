import pytest

from vms_api.extensions import db
from vms_api.models.resource import Resource


@pytest.fixture
def resource(app):
    def _make(total=5, **kw):
        with app.app_context():
            r = Resource(name="Radio", quantity_total=total, quantity_available=total, **kw)
            db.session.add(r)
            db.session.commit()
            return r.id
    return _make


def _available(app, rid):
    with app.app_context():
        r = db.session.get(Resource, rid)
        return r.quantity_available, r.status


def test_checkout_and_return_quantity(app, client, auth, resource):
    rid = resource(total=5)
    staff = auth(1, "organizer")

    r = client.post(f"/api/v1/resources/{rid}/assignments", json={"quantity": 3, "relatedId": 7}, headers=staff)
    assert r.status_code == 201
    ra_id = r.get_json()["data"]["id"]
    assert _available(app, rid) == (2, "available")

    r = client.post(f"/api/v1/resources/{rid}/assignments", json={"quantity": 3}, headers=staff)
    assert r.status_code == 409
    assert r.get_json()["error"]["message"] == "Insufficient quantity available"

    r = client.post(f"/api/v1/resource-assignments/{ra_id}/return", json={"condition": "good"}, headers=staff)
    assert r.status_code == 200
    assert r.get_json()["data"]["status"] == "returned"
    assert _available(app, rid) == (5, "available")

    r = client.post(f"/api/v1/resource-assignments/{ra_id}/return", json={}, headers=staff)
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "ALREADY_RETURNED"

    listing = client.get(f"/api/v1/resources/{rid}/assignments", headers=staff).get_json()["data"]
    assert [x["id"] for x in listing] == [ra_id]


def test_damaged_units_stay_out(app, client, auth, resource):
    rid = resource(total=4)
    staff = auth(1, "admin")
    ra_id = client.post(f"/api/v1/resources/{rid}/assignments", json={"quantity": 2},
                        headers=staff).get_json()["data"]["id"]

    client.post(f"/api/v1/resource-assignments/{ra_id}/return", json={"condition": "damaged"}, headers=staff)
    assert _available(app, rid) == (2, "available")


def test_serialized_item_status_follows_checkout(app, client, auth, resource):
    rid = resource(total=1, serial_number="SN-001")
    staff = auth(1, "organizer")
    ra_id = client.post(f"/api/v1/resources/{rid}/assignments", json={}, headers=staff).get_json()["data"]["id"]
    assert _available(app, rid) == (0, "in_use")

    client.post(f"/api/v1/resource-assignments/{ra_id}/return", json={"condition": "damaged"}, headers=staff)
    assert _available(app, rid) == (0, "damaged")


def test_maintenance_checkout_locks_resource(app, client, auth, resource):
    rid = resource(total=3)
    staff = auth(1, "organizer")
    ra_id = client.post(f"/api/v1/resources/{rid}/assignments",
                        json={"quantity": 1, "assignmentType": "maintenance"},
                        headers=staff).get_json()["data"]["id"]
    assert _available(app, rid) == (2, "maintenance")

    r = client.post(f"/api/v1/resources/{rid}/assignments", json={"quantity": 1}, headers=staff)
    assert r.status_code == 409
    assert r.get_json()["error"]["code"] == "RESOURCE_UNAVAILABLE"

    client.post(f"/api/v1/resource-assignments/{ra_id}/return", json={}, headers=staff)
    assert _available(app, rid) == (3, "available")


def test_checkout_rejects_bad_input(app, client, auth, resource):
    rid = resource(status="retired")
    staff = auth(1, "organizer")
    r = client.post(f"/api/v1/resources/{rid}/assignments", json={}, headers=staff)
    assert r.get_json()["error"]["code"] == "RESOURCE_UNAVAILABLE"

    r = client.post(f"/api/v1/resources/{rid}/assignments", json={"assignmentType": "loan"}, headers=staff)
    assert r.status_code == 422
    r = client.post(f"/api/v1/resources/{rid}/assignments", json={"quantity": 0}, headers=staff)
    assert r.status_code == 422
    r = client.post("/api/v1/resources/777/assignments", json={}, headers=staff)
    assert r.status_code == 404
    r = client.post(f"/api/v1/resources/{rid}/assignments", json={}, headers=auth(7))
    assert r.status_code == 403
