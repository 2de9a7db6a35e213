import pytest

CASES = [
    # UBS 1 Ceilândia sits exactly on the query point
    {
        "params": {"lat": -15.8747, "lon": -48.0961, "radius_km": 5},
        "expected_ids": [1, 2],
    },
    # wide radius reaches the Esplanada unit too, still closest first
    {
        "params": {"lat": -15.8747, "lon": -48.0961, "radius_km": 30},
        "expected_ids": [1, 2, 3],
    },
    # zero radius: only exact duplicates
    {
        "params": {"lat": -15.8747, "lon": -48.0961, "radius_km": 0},
        "expected_ids": [1],
    },
]


@pytest.mark.parametrize("case", CASES, ids=["5km", "30km", "0km"])
def test_nearby_ubs(client, case):
    resp = client.get("/nearby", params=case["params"])
    assert resp.status_code == 200, resp.text
    data = resp.json()

    ids = [r["record"]["id"] for r in data["results"]]
    assert ids == case["expected_ids"]
    assert data["count"] == len(ids)

    # sorted ascending, rounded for display
    dists = [r["distance_km"] for r in data["results"]]
    assert dists == sorted(dists)
    assert all(round(d, 2) == d for d in dists)

    # no record without coordinates, no inactive record
    assert 4 not in ids and 5 not in ids


def test_nearby_other_kind(client):
    resp = client.get("/nearby", params={"lat": -15.8747, "lon": -48.0961, "kind": "ong"})
    assert resp.status_code == 200, resp.text
    assert [r["record"]["name"] for r in resp.json()["results"]] == ["ONG Vida"]


def test_nearby_rejects_bad_input(client):
    assert client.get("/nearby", params={"lat": 95, "lon": 0}).status_code == 400
    assert client.get("/nearby", params={"lat": 0, "lon": 0, "radius_km": -1}).status_code == 422
    assert client.get("/nearby", params={"lat": 0, "lon": 0, "kind": "hospital"}).status_code == 422


def test_nearest_ubs(client):
    resp = client.get("/nearest", params={"lat": -15.90, "lon": -48.07})
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["record"]["id"] == 2
    assert data["record"]["name"] == "UBS 2 Samambaia"
    assert 0 < data["distance_km"] < 1.5


def test_nearest_none_available(client):
    resp = client.get("/nearest", params={"lat": -15.9, "lon": -48.0, "kind": "equipamento"})
    assert resp.status_code == 404


def test_distance_endpoint(client):
    params = {"lat1": -15.8747, "lon1": -48.0961, "lat2": -15.9058, "lon2": -48.0641}
    resp = client.get("/distance", params=params)
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["distance_km"] == pytest.approx(4.87, abs=0.05)
    assert data["origin"] == [-15.8747, -48.0961]


def test_store_info(client):
    resp = client.get("/_store_info")
    assert resp.status_code == 200, resp.text
    data = resp.json()
    assert data["facility_counts"]["ubs"] == 5
    assert data["geocoder_provider"] == "FakeNominatim"
    assert data["min_interval_sec"] == 1.1
