from datetime import datetime

import pytest

import database

PROJECT = {
    "title": "Portfolio Site",
    "slug": "portfolio-site",
    "short_description": "This very site.",
    "tech_stack": ["FastAPI", "MongoDB", "React"],
    "role": "Solo developer",
    "project_type": "personal",
    "start_date": "2023-01-15T00:00:00+00:00",
    "end_date": None,
    "is_ongoing": True,
    "thumbnail_image_url": "/uploads/1700000000000-123.png",
    "live_url": "https://example.com",
    "github_url": "https://github.com/example/portfolio",
    "is_featured": True,
    "order": 1,
    "detail": {
        "markdown_content": "# Portfolio\n\nBuilt over a few weekends.",
        "sections": [{"title": "Goal", "content": "Show my work."}],
        "gallery_images": [{"url": "/uploads/shot.png", "caption": "Home page"}],
        "demo_video_url": None,
    },
}


def make_project(**overrides):
    return {**PROJECT, **overrides}


@pytest.fixture
def project(client, auth_headers):
    res = client.post("/api/admin/projects", json=PROJECT, headers=auth_headers)
    assert res.status_code == 201
    return res.json()


def test_create_then_read_round_trips(client, auth_headers, project):
    admin_view = client.get(f"/api/admin/projects/{project['id']}", headers=auth_headers).json()
    public_view = client.get("/api/projects/portfolio-site").json()
    for view in (project, admin_view, public_view):
        for key, value in PROJECT.items():
            assert view[key] == value, key
    assert public_view["id"] == project["id"]


def test_duplicate_slug_is_rejected(client, auth_headers, project, mongo_db):
    res = client.post("/api/admin/projects", json=make_project(title="Other"), headers=auth_headers)
    assert res.status_code == 400
    assert res.json()["detail"] == "Slug already exists"
    assert mongo_db[database.COLL_PROJECTS].count_documents({}) == 1


def test_slug_is_normalised_and_checked(client, auth_headers):
    res = client.post("/api/admin/projects", json=make_project(slug="Mixed-Case"), headers=auth_headers)
    assert res.status_code == 201
    assert res.json()["slug"] == "mixed-case"

    res = client.post("/api/admin/projects", json=make_project(slug="not a slug!"), headers=auth_headers)
    assert res.status_code == 400


@pytest.mark.parametrize("field", ["title", "slug", "short_description", "role", "start_date"])
def test_required_fields(client, auth_headers, field):
    payload = {k: v for k, v in PROJECT.items() if k != field}
    res = client.post("/api/admin/projects", json=payload, headers=auth_headers)
    assert res.status_code == 400
    assert field in res.json()["detail"]


def test_unknown_fields_are_rejected(client, auth_headers):
    res = client.post("/api/admin/projects", json=make_project(owner="me"), headers=auth_headers)
    assert res.status_code == 400


def test_invalid_project_type(client, auth_headers):
    res = client.post("/api/admin/projects", json=make_project(project_type="hackathon"), headers=auth_headers)
    assert res.status_code == 400


def test_partial_update(client, auth_headers, project):
    res = client.put(f"/api/admin/projects/{project['id']}", json={"title": "Renamed"}, headers=auth_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["title"] == "Renamed"
    assert body["slug"] == "portfolio-site"
    assert body["tech_stack"] == PROJECT["tech_stack"]


def test_update_accepts_a_document_read_back(client, auth_headers, project):
    doc = client.get(f"/api/admin/projects/{project['id']}", headers=auth_headers).json()
    doc["is_featured"] = False
    res = client.put(f"/api/admin/projects/{project['id']}", json=doc, headers=auth_headers)
    assert res.status_code == 200
    assert res.json()["is_featured"] is False


def test_update_rejects_invalid_values(client, auth_headers, project):
    res = client.put(f"/api/admin/projects/{project['id']}", json={"title": ""}, headers=auth_headers)
    assert res.status_code == 400


def test_update_cannot_steal_a_slug(client, auth_headers, project):
    other = client.post(
        "/api/admin/projects", json=make_project(slug="other-project"), headers=auth_headers
    ).json()
    res = client.put(f"/api/admin/projects/{other['id']}", json={"slug": "portfolio-site"}, headers=auth_headers)
    assert res.status_code == 400
    # keeping its own slug is fine
    res = client.put(f"/api/admin/projects/{other['id']}", json={"slug": "other-project"}, headers=auth_headers)
    assert res.status_code == 200


@pytest.mark.parametrize("project_id", ["64b7f0c2a1b2c3d4e5f60718", "not-an-id"])
def test_missing_project_is_not_found(client, auth_headers, project_id):
    assert client.get(f"/api/admin/projects/{project_id}", headers=auth_headers).status_code == 404
    res = client.put(f"/api/admin/projects/{project_id}", json={"title": "x"}, headers=auth_headers)
    assert res.status_code == 404


def test_delete_is_idempotent(client, auth_headers, project):
    url = f"/api/admin/projects/{project['id']}"
    assert client.delete(url, headers=auth_headers).json() == {"message": "Project deleted"}
    assert client.get(url, headers=auth_headers).status_code == 404
    assert client.delete(url, headers=auth_headers).status_code == 200
    assert client.get("/api/projects/portfolio-site").status_code == 404


def test_public_listing_order_and_featured_filter(client, auth_headers):
    client.post("/api/admin/projects", json=make_project(slug="third", order=3, is_featured=False), headers=auth_headers)
    client.post("/api/admin/projects", json=make_project(slug="first", order=1), headers=auth_headers)
    client.post("/api/admin/projects", json=make_project(slug="second", order=2, is_featured=False), headers=auth_headers)

    slugs = [p["slug"] for p in client.get("/api/projects").json()]
    assert slugs == ["first", "second", "third"]
    featured = [p["slug"] for p in client.get("/api/projects", params={"featured": "true"}).json()]
    assert featured == ["first"]
    admin_slugs = [p["slug"] for p in client.get("/api/admin/projects", headers=auth_headers).json()]
    assert admin_slugs == slugs


def test_unknown_public_slug(client):
    res = client.get("/api/projects/nothing-here")
    assert res.status_code == 404
    assert res.json()["detail"] == "Project not found"


def parse_ts(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def test_utc_timestamps_keep_their_zone(client, auth_headers):
    sent = make_project(start_date="2023-01-15T00:00:00.000Z", end_date="2023-06-01T12:30:00Z")
    assert client.post("/api/admin/projects", json=sent, headers=auth_headers).status_code == 201

    got = client.get("/api/projects/portfolio-site").json()
    for field in ("start_date", "end_date"):
        assert got[field].endswith("+00:00"), got[field]
        assert parse_ts(got[field]) == parse_ts(sent[field])


def test_offset_timestamps_come_back_as_the_same_instant_in_utc(client, auth_headers):
    sent = make_project(start_date="2023-01-15T02:00:00+02:00")
    assert client.post("/api/admin/projects", json=sent, headers=auth_headers).status_code == 201

    got = client.get("/api/projects/portfolio-site").json()["start_date"]
    assert got == "2023-01-15T00:00:00+00:00"
    assert parse_ts(got) == parse_ts(sent["start_date"])


@pytest.mark.parametrize("field", ["title", "slug", "short_description", "role"])
def test_blank_required_strings_are_rejected(client, auth_headers, mongo_db, field):
    res = client.post("/api/admin/projects", json=make_project(**{field: "   "}), headers=auth_headers)
    assert res.status_code == 400
    assert field in res.json()["detail"]
    assert mongo_db[database.COLL_PROJECTS].count_documents({}) == 0


def test_required_strings_are_trimmed(client, auth_headers):
    res = client.post("/api/admin/projects", json=make_project(title="  Portfolio Site  "), headers=auth_headers)
    assert res.status_code == 201
    assert res.json()["title"] == "Portfolio Site"


def test_update_rejects_blank_role(client, auth_headers, project):
    res = client.put(f"/api/admin/projects/{project['id']}", json={"role": " \t "}, headers=auth_headers)
    assert res.status_code == 400
