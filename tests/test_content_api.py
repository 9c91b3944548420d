import io

from PIL import Image


def _png():
    buffer = io.BytesIO()
    Image.new("RGB", (20, 10), "blue").save(buffer, format="PNG")
    return buffer.getvalue()


def test_slider_fields_are_grouped_by_slide(client, admin_headers):
    saved = client.post(
        "/api/cms/slider",
        json={"slider_id": "1", "fields": {"title": "Admissions open", "image": "/s1.jpg"}},
        headers=admin_headers,
    )
    assert saved.status_code == 200
    assert saved.json()["message"] == "Slider 1 content updated successfully"
    assert saved.json()["data"] == {"image": "/s1.jpg", "title": "Admissions open"}
    client.post("/api/cms/slider", json={"slider_id": "2", "fields": {"title": "Typing"}}, headers=admin_headers)

    slides = client.get("/api/cms/slider").json()["data"]
    assert slides == {"1": {"image": "/s1.jpg", "title": "Admissions open"}, "2": {"title": "Typing"}}
    assert client.get("/api/cms/slider", params={"id": "2"}).json()["data"] == {"2": {"title": "Typing"}}


def test_slider_rejects_empty_or_bad_payload(client, admin_headers, atc_headers):
    empty = client.post("/api/cms/slider", json={"slider_id": "1", "fields": {}}, headers=admin_headers)
    assert empty.status_code == 400
    bad_id = client.post("/api/cms/slider", json={"slider_id": "one", "fields": {"a": "b"}}, headers=admin_headers)
    assert bad_id.status_code == 422
    assert client.post("/api/cms/slider", json={"slider_id": "1", "fields": {"a": "b"}}, headers=atc_headers).status_code == 403


def test_gallery_lists_active_items_in_order(client, admin_headers):
    def add(**item):
        payload = {"item_type": "image", "title": "Lab", "category": "campus", "image_url": "/lab.jpg", **item}
        return client.post("/api/gallery", json=payload, headers=admin_headers)

    assert add(title="Second", order=2).status_code == 201
    add(title="First", order=1)
    add(title="Hidden", is_active=False)
    add(title="Party", category="events")
    add(title="Tour", item_type="video", image_url=None, video_url="https://video.example/tour")

    titles = [i["title"] for i in client.get("/api/gallery").json()["data"]]
    assert "Hidden" not in titles
    assert titles.index("First") < titles.index("Second")

    campus = client.get("/api/gallery", params={"category": "campus", "itemType": "image"}).json()["data"]
    assert sorted(i["title"] for i in campus) == ["First", "Second"]
    assert len(client.get("/api/gallery", params={"category": "all"}).json()["data"]) == 4


def test_gallery_media_rules(client, admin_headers):
    no_image = client.post(
        "/api/gallery", json={"item_type": "image", "title": "x", "category": "campus"}, headers=admin_headers
    )
    assert no_image.status_code == 400
    assert no_image.json()["message"] == "Image URL is required for image items"

    item = client.post(
        "/api/gallery",
        json={"item_type": "image", "title": "x", "category": "campus", "image_url": "/x.jpg"},
        headers=admin_headers,
    ).json()["data"]
    switched = client.put(f"/api/gallery/{item['id']}", json={"item_type": "video"}, headers=admin_headers)
    assert switched.status_code == 400
    assert switched.json()["message"] == "Video URL is required for video items"

    renamed = client.put(f"/api/gallery/{item['id']}", json={"title": "Lab"}, headers=admin_headers)
    assert renamed.json()["data"]["title"] == "Lab"
    assert client.delete(f"/api/gallery/{item['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/gallery/{item['id']}").status_code == 404


def test_gallery_image_upload(client, admin_headers):
    response = client.post(
        "/api/gallery/upload",
        data={"category": "events"},
        files={"file": ("p.png", _png(), "image/png")},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["data"]["url"].startswith("/uploads/gallery/events/")


def test_legal_documents_upload_list_and_delete(client, admin_headers, db):
    missing = client.post("/api/legal-documents", data={"title": "Terms"}, headers=admin_headers)
    assert missing.status_code == 400
    assert missing.json()["message"] == "At least a document file or an image is required"

    wrong_type = client.post(
        "/api/legal-documents",
        data={"title": "Terms"},
        files={"file": ("terms.exe", b"MZ", "application/octet-stream")},
        headers=admin_headers,
    )
    assert wrong_type.status_code == 400

    created = client.post(
        "/api/legal-documents",
        data={"title": "Registration Certificate", "description": "Govt. registration"},
        files={"file": ("reg.pdf", b"%PDF-1.4 sample", "application/pdf"), "image": ("cover.png", _png(), "image/png")},
        headers=admin_headers,
    )
    assert created.status_code == 201
    document = created.json()["data"]
    assert document["file_name"] == "reg.pdf"
    assert document["file_url"].startswith("/uploads/legal/files/")
    assert document["image_url"].startswith("/uploads/legal/covers/")
    assert document["created_by"] == "admin@example.com"

    public = client.get("/api/legal-documents/public").json()["data"]
    assert [d["title"] for d in public] == ["Registration Certificate"]
    assert client.get("/api/legal-documents").status_code == 401

    assert client.delete(f"/api/legal-documents/{document['id']}", headers=admin_headers).status_code == 200
    assert db["legal_documents"].count_documents({}) == 0


def test_team_members_are_appended_in_order(client, admin_headers):
    member = {"name": "Sunil", "position": "Director", "description": "Founder", "image_url": "/sunil.jpg"}
    first = client.post("/api/team", json=member, headers=admin_headers).json()["data"]
    second = client.post("/api/team", json={**member, "name": "Kavita"}, headers=admin_headers).json()["data"]
    assert (first["order"], second["order"]) == (1, 2)

    incomplete = client.post("/api/team", json={**member, "description": ""}, headers=admin_headers)
    assert incomplete.status_code == 422

    client.put(f"/api/team/{second['id']}", json={"order": 0}, headers=admin_headers)
    assert [m["name"] for m in client.get("/api/team").json()["data"]] == ["Kavita", "Sunil"]

    assert client.delete(f"/api/team/{first['id']}", headers=admin_headers).status_code == 200
    assert client.get(f"/api/team/{first['id']}").status_code == 404
