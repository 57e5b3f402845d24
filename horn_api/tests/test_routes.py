"""
Tests for the HornForge HTTP service.

Uses FastAPI's TestClient against the real application, plus a throwaway
app for the rate limiter.
"""

import math
import sys
import os

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))
os.environ.setdefault("HORN_RATE_LIMIT_PER_MINUTE", "10000")

from horn_api.main import app
from horn_api.middleware.rate_limit import RateLimitMiddleware


@pytest.fixture(scope="module")
def client():
    with TestClient(app) as c:
        yield c


HORN = {
    "kind": "conical",
    "throat_radius": 25.0,
    "mouth_radius": 175.0,
    "length": 300.0,
    "segments": 20,
}


class TestHealth:
    """Health check."""

    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["engine_version"] == "0.1.0"


class TestProfileRoutes:
    """/api/profiles/*"""

    def test_kinds(self, client):
        response = client.get("/api/profiles/kinds")
        assert response.status_code == 200
        kinds = {k["kind"]: k for k in response.json()["kinds"]}
        assert len(kinds) == 12
        assert kinds["tractrix"]["strategy"] == "implicit"
        assert kinds["jmlc"]["options"]["coverage_angle"] == 90

    def test_generate(self, client):
        response = client.post("/api/profiles/generate", json=HORN)
        assert response.status_code == 200
        body = response.json()
        assert len(body["points"]) == 21
        assert body["points"][0]["radius"] == 25.0
        assert body["points"][-1]["radius"] == 175.0
        assert body["validation"]["valid"]

    def test_generate_with_options(self, client):
        payload = dict(HORN, kind="hypex", options={"t_factor": 0.5})
        response = client.post("/api/profiles/generate", json=payload)
        assert response.status_code == 200
        assert response.json()["kind"] == "hypex"

    def test_unknown_option_is_400(self, client):
        payload = dict(HORN, kind="hypex", options={"flare": 2})
        response = client.post("/api/profiles/generate", json=payload)
        assert response.status_code == 400
        assert "hypex" in response.json()["detail"]

    @pytest.mark.parametrize("kind, options", [
        ("hypex", {"t_factor": "wide"}),
        ("jmlc", {"substeps": "many"}),
        ("spherical", {"mouth_angle": [60]}),
        ("petf", {"progression": 1}),
    ])
    def test_wrong_option_type_is_400(self, client, kind, options):
        payload = dict(HORN, kind=kind, options=options)
        response = client.post("/api/profiles/generate", json=payload)
        assert response.status_code == 400
        assert next(iter(options)) in response.json()["detail"]

    def test_wrong_option_type_in_acoustics_horn_is_400(self, client):
        horn = dict(HORN, kind="hypex", options={"t_factor": "wide"})
        response = client.post("/api/acoustics/solve", json={"horn": horn, "frequencies": [1000.0]})
        assert response.status_code == 400

    def test_long_jmlc_with_small_mouth(self, client):
        payload = {
            "kind": "jmlc",
            "throat_radius": 5.4033,
            "mouth_radius": 37.5017,
            "length": 279.51,
            "segments": 2,
        }
        response = client.post("/api/profiles/generate", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["validation"]["valid"]
        assert body["points"][-1]["radius"] == 37.5017

    def test_engine_rejection_is_400(self, client):
        payload = dict(HORN, kind="spherical", length=100.0)
        response = client.post("/api/profiles/generate", json=payload)
        assert response.status_code == 400
        assert "quarter sphere" in response.json()["detail"]

    def test_missing_combination_is_400(self, client):
        payload = {"kind": "conical", "throat_radius": 25.0, "mouth_radius": 175.0}
        assert client.post("/api/profiles/generate", json=payload).status_code == 400

    @pytest.mark.parametrize("override", [
        {"kind": "trumpet"},
        {"throat_radius": -1.0},
        {"segments": 1},
    ])
    def test_schema_violation_is_422(self, client, override):
        response = client.post("/api/profiles/generate", json=dict(HORN, **override))
        assert response.status_code == 422


class TestAcousticsRoute:
    """/api/acoustics/solve"""

    def test_solve_generated_horn(self, client):
        payload = {"horn": HORN, "frequencies": [500.0, 1000.0, 2000.0]}
        response = client.post("/api/acoustics/solve", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert body["cutoff_frequency"] == pytest.approx(343.2 / (4 * math.pi * 0.025), rel=1e-3)
        points = body["responses"]
        assert [p["frequency"] for p in points] == [500.0, 1000.0, 2000.0]
        assert points[0]["group_delay"] is None
        assert points[1]["group_delay"] is not None
        assert set(points[0]["transfer"]) == {"real", "imag"}

    def test_solve_explicit_profile_with_sweep(self, client):
        payload = {
            "profile": [{"x": 0.0, "radius": 20.0}, {"x": 100.0, "radius": 40.0}, {"x": 200.0, "radius": 80.0}],
            "sweep": {"start": 100.0, "end": 10000.0, "num_points": 25},
            "medium": {"temperature": None, "speed_of_sound": 340.0},
        }
        response = client.post("/api/acoustics/solve", json=payload)
        assert response.status_code == 200
        assert len(response.json()["responses"]) == 25

    def test_termination_override(self, client):
        payload = {
            "horn": HORN,
            "frequencies": [800.0],
            "termination_impedance": {"real": 1e12, "imag": 0.0},
        }
        blocked = client.post("/api/acoustics/solve", json=payload)
        free = client.post("/api/acoustics/solve", json={"horn": HORN, "frequencies": [800.0]})
        assert blocked.status_code == free.status_code == 200
        z_blocked = blocked.json()["responses"][0]["throat_impedance"]
        z_free = free.json()["responses"][0]["throat_impedance"]
        assert abs(z_blocked["real"]) < 1e-3 * z_free["real"]

    def test_needs_exactly_one_geometry(self, client):
        assert client.post("/api/acoustics/solve", json={"frequencies": [100.0]}).status_code == 400
        both = {"horn": HORN, "profile": [{"x": 0, "radius": 1}, {"x": 1, "radius": 2}]}
        assert client.post("/api/acoustics/solve", json=both).status_code == 400

    def test_bad_sweep_is_400(self, client):
        payload = {"horn": HORN, "sweep": {"start": 1000.0, "end": 100.0}}
        assert client.post("/api/acoustics/solve", json=payload).status_code == 400

    def test_empty_frequency_list_is_400(self, client):
        payload = {"horn": HORN, "frequencies": []}
        assert client.post("/api/acoustics/solve", json=payload).status_code == 400


class TestDirectivityRoute:
    """/api/directivity/polar"""

    def test_rectangle(self, client):
        payload = {"shape": "rectangle", "width": 400.0, "height": 200.0, "frequency": 4000.0, "angle_step": 2.0}
        response = client.post("/api/directivity/polar", json=payload)
        assert response.status_code == 200
        body = response.json()
        assert len(body["azimuth"]) == 91
        bw = body["beamwidth"]
        assert 0 < bw["azimuth"]["minus6db"] < bw["elevation"]["minus6db"]
        assert set(body["estimated_beamwidth"]) == {"azimuth", "elevation"}

    def test_superellipse_exponent(self, client):
        payload = {"shape": "superellipse", "width": 300.0, "height": 300.0, "n": 4.0, "frequency": 2000.0}
        response = client.post("/api/directivity/polar", json=payload)
        assert response.status_code == 200
        on_axis = next(p for p in response.json()["azimuth"] if p["angle"] == 0.0)
        assert on_axis["db"] == 0.0

    def test_bad_shape_is_422(self, client):
        payload = {"shape": "hexagon", "width": 300.0, "height": 300.0, "frequency": 2000.0}
        assert client.post("/api/directivity/polar", json=payload).status_code == 422

    @pytest.mark.parametrize("step", [0.0, 1e-6, 0.01, 0.09])
    def test_too_fine_angle_step_is_422(self, client, step):
        payload = {"shape": "circle", "width": 300.0, "height": 300.0, "frequency": 2000.0, "angle_step": step}
        assert client.post("/api/directivity/polar", json=payload).status_code == 422

    def test_finest_angle_step_allowed(self, client):
        payload = {"shape": "circle", "width": 300.0, "height": 300.0, "frequency": 2000.0, "angle_step": 0.1}
        response = client.post("/api/directivity/polar", json=payload)
        assert response.status_code == 200
        assert len(response.json()["azimuth"]) == 1801

    def test_directivity_index(self, client):
        base = {"shape": "circle", "width": 300.0, "height": 300.0, "angle_step": 1.0}
        low = client.post("/api/directivity/polar", json=dict(base, frequency=100.0)).json()
        high = client.post("/api/directivity/polar", json=dict(base, frequency=4000.0)).json()
        baffled = client.post("/api/directivity/polar", json=dict(base, frequency=100.0, half_space=True)).json()
        assert low["directivity_index"] == pytest.approx(0.0, abs=0.1)
        assert baffled["directivity_index"] == pytest.approx(10 * math.log10(2), abs=0.1)
        assert high["directivity_index"] > low["directivity_index"]
        assert high["directivity_factor"] == pytest.approx(10 ** (high["directivity_index"] / 10))


class TestRateLimit:
    """Sliding-window limiter on a throwaway app."""

    @pytest.fixture
    def limited(self):
        small = FastAPI()
        small.add_middleware(RateLimitMiddleware, requests_per_minute=3, heavy_requests_per_minute=1)

        @small.get("/api/ping")
        async def ping():
            return {"ok": True}

        @small.post("/api/directivity/polar")
        async def heavy():
            return {"ok": True}

        @small.get("/api/health")
        async def health():
            return {"ok": True}

        return TestClient(small)

    def test_general_limit(self, limited):
        codes = [limited.get("/api/ping").status_code for _ in range(4)]
        assert codes == [200, 200, 200, 429]

    def test_heavy_limit(self, limited):
        codes = [limited.post("/api/directivity/polar").status_code for _ in range(2)]
        assert codes == [200, 429]

    def test_health_exempt(self, limited):
        codes = [limited.get("/api/health").status_code for _ in range(5)]
        assert codes == [200] * 5

    def test_clients_counted_separately(self, limited):
        for _ in range(3):
            limited.get("/api/ping", headers={"x-forwarded-for": "10.0.0.1"})
        assert limited.get("/api/ping", headers={"x-forwarded-for": "10.0.0.1"}).status_code == 429
        assert limited.get("/api/ping", headers={"x-forwarded-for": "10.0.0.2"}).status_code == 200
