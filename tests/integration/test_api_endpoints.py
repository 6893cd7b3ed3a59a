import io

from PIL import Image


def make_png_bytes(w=4, h=4, color=(128, 64, 32)) -> bytes:
    img = Image.new("RGB", (w, h), color)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def _open(client, auth_header, spare_part_id, **params):
    r = client.post(f"/spare-parts/{spare_part_id}/edit-sessions", headers=auth_header, params=params)
    assert r.status_code == 201, r.text
    return r.json()


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "ok"
    assert client.get("/health").json() == {"status": "healthy"}


def test_requires_bearer_token(client, seeded):
    r = client.get(f"/spare-parts/{seeded['spare_part']['id']}")
    assert r.status_code == 401


def test_get_spare_part_primary_first(client, auth_header, seeded):
    r = client.get(f"/spare-parts/{seeded['spare_part']['id']}", headers=auth_header)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["brand"]["name"] == "Toyota"
    assert data["category"]["name"] == "Brakes"
    assert data["country"]["currency_code"] == "QAR"
    assert data["images"][0]["id"] == seeded["images"][1]["id"]
    assert data["images"][0]["is_primary"] is True


def test_get_unknown_spare_part(client, auth_header, seeded):
    r = client.get("/spare-parts/does-not-exist", headers=auth_header)
    assert r.status_code == 404


def test_open_session_loads_dropdowns(client, auth_header, seeded):
    data = _open(client, auth_header, seeded["spare_part"]["id"])
    assert data["state"] == "editing"
    assert data["form"]["title"] == "Brake pads"
    assert data["form"]["city_id"] == "100"
    assert [b["name"] for b in data["options"]["brands"]] == ["Nissan", "Toyota"]
    assert [m["name"] for m in data["options"]["models"]] == ["Camry", "Corolla"]
    assert [c["name"] for c in data["options"]["cities"]] == ["Al Wakrah", "Doha"]
    assert len(data["options"]["countries"]) == 3
    assert sum(img["is_primary"] for img in data["images"]) == 1


def test_other_user_cannot_open_or_read_session(client, auth_header, other_auth_header, seeded):
    spare_part_id = seeded["spare_part"]["id"]
    r = client.post(f"/spare-parts/{spare_part_id}/edit-sessions", headers=other_auth_header)
    assert r.status_code == 404

    session = _open(client, auth_header, spare_part_id)
    r = client.get(f"/edit-sessions/{session['id']}", headers=other_auth_header)
    assert r.status_code == 404


def test_country_change_cascades(client, auth_header, seeded):
    session = _open(client, auth_header, seeded["spare_part"]["id"])
    r = client.patch(f"/edit-sessions/{session['id']}/fields", headers=auth_header, json={"country_id": 2})
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["form"]["city_id"] == ""
    assert data["form"]["currency"] == "AED"
    assert sorted(c["id"] for c in data["options"]["cities"]) == [200, 201]

    r = client.patch(f"/edit-sessions/{session['id']}/fields", headers=auth_header, json={"country_id": 3})
    assert r.json()["form"]["city_id"] == "300"

    r = client.patch(f"/edit-sessions/{session['id']}/fields", headers=auth_header, json={"city_id": 100})
    assert r.status_code == 400


def test_invalid_condition_rejected(client, auth_header, seeded):
    session = _open(client, auth_header, seeded["spare_part"]["id"])
    r = client.patch(f"/edit-sessions/{session['id']}/fields", headers=auth_header, json={"condition": "broken"})
    assert r.status_code == 422


def test_set_primary_is_written_immediately(client, auth_header, seeded):
    spare_part_id = seeded["spare_part"]["id"]
    session = _open(client, auth_header, spare_part_id)
    target_url = session["images"][2]["url"]

    r = client.post(f"/edit-sessions/{session['id']}/images/primary", headers=auth_header, json={"index": 2})
    assert r.status_code == 200, r.text
    images = r.json()["images"]
    assert images[0]["url"] == target_url
    assert images[0]["is_primary"] is True

    stored = client.get(f"/spare-parts/{spare_part_id}", headers=auth_header).json()["images"]
    assert [img["is_primary"] for img in stored] == [True, False, False]
    assert stored[0]["url"] == target_url


def test_remove_add_and_submit(client, auth_header, seeded, storage_dir):
    spare_part_id = seeded["spare_part"]["id"]
    session = _open(client, auth_header, spare_part_id)
    sid = session["id"]
    primary_url = next(img["url"] for img in session["images"] if img["is_primary"])

    r = client.delete(f"/edit-sessions/{sid}/images", headers=auth_header, params={"ref": primary_url})
    assert r.status_code == 200, r.text
    assert sum(img["is_primary"] for img in r.json()["images"]) == 1

    png = make_png_bytes()
    files = [("files", ("new.png", png, "image/png"))]
    r = client.post(f"/edit-sessions/{sid}/images", headers=auth_header, files=files)
    assert r.status_code == 200, r.text
    new_image = r.json()["images"][-1]
    assert new_image["is_new"] is True
    assert new_image["url"].startswith("blob:")

    r = client.get(new_image["preview_path"], headers=auth_header)
    assert r.status_code == 200
    assert r.content == png

    r = client.patch(f"/edit-sessions/{sid}/fields", headers=auth_header, json={"title": "Ceramic brake pads", "price": "180"})
    assert r.status_code == 200

    r = client.post(f"/edit-sessions/{sid}/submit", headers=auth_header)
    assert r.status_code == 200, r.text
    part = r.json()["spare_part"]
    assert part["title"] == "Ceramic brake pads"
    assert part["price"] == 180.0
    assert len(part["images"]) == 3
    assert primary_url not in [img["url"] for img in part["images"]]
    assert sum(img["is_primary"] for img in part["images"]) == 1
    assert part["images"][0]["is_primary"] is True
    uploaded = [img["url"] for img in part["images"] if "/seed-" not in img["url"]]
    assert len(uploaded) == 1
    assert (storage_dir / uploaded[0].removeprefix("/local-storage/")).read_bytes() == png

    # the session is gone after a successful save
    assert client.get(f"/edit-sessions/{sid}", headers=auth_header).status_code == 404


def test_invalid_upload_is_reported_not_fatal(client, auth_header, seeded):
    session = _open(client, auth_header, seeded["spare_part"]["id"])
    files = [
        ("files", ("notes.txt", b"hello", "text/plain")),
        ("files", ("ok.png", make_png_bytes(), "image/png")),
    ]
    r = client.post(f"/edit-sessions/{session['id']}/images", headers=auth_header, files=files)
    assert r.status_code == 200, r.text
    data = r.json()
    assert len(data["images"]) == 4
    assert any("notes.txt" in n for n in data["notices"])


def test_image_limit(client, auth_header, seeded):
    session = _open(client, auth_header, seeded["spare_part"]["id"])
    files = [("files", (f"{i}.png", make_png_bytes(), "image/png")) for i in range(8)]
    r = client.post(f"/edit-sessions/{session['id']}/images", headers=auth_header, files=files)
    assert r.status_code == 400
    assert "at most 10" in r.json()["detail"]


def test_close_session(client, auth_header, seeded):
    session = _open(client, auth_header, seeded["spare_part"]["id"])
    r = client.delete(f"/edit-sessions/{session['id']}", headers=auth_header)
    assert r.status_code == 200
    assert r.json() == {"ok": True}
    assert client.get(f"/edit-sessions/{session['id']}", headers=auth_header).status_code == 404


def test_reference_endpoints(client, auth_header, seeded):
    r = client.get("/reference/models", headers=auth_header, params={"brand_id": 2})
    assert r.status_code == 200, r.text
    assert [m["name"] for m in r.json()["options"]] == ["Patrol"]

    r = client.get("/reference/cities", headers=auth_header, params={"country_id": 2})
    assert [c["name"] for c in r.json()["options"]] == ["Abu Dhabi", "Dubai"]

    r = client.get("/reference/categories", headers=auth_header)
    assert [c["name"] for c in r.json()["options"]] == ["Brakes", "Engine"]
