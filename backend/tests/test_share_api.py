from urllib.parse import parse_qs, urlsplit

from conftest import PUBLIC_PREFIX, make_data_url, make_image_bytes


def _strip_query(url):
    return urlsplit(url)._replace(query="").geturl()


def _share(client, base, overlay, **transform):
    body = {"baseImage": base, "overlayImage": overlay}
    body.update(transform)
    return client.post("/api/share", json=body)


def test_share_then_fetch_round_trips_transform(client, fake_supabase, png_data_url):
    response = _share(
        client,
        png_data_url,
        make_data_url("JPEG"),
        position={"x": 0, "y": 0.5, "z": 0.1},
        rotation={"x": 1.5708, "y": 0, "z": 0},
        scale=0.8,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    unique_id = body["uniqueId"]
    assert len(unique_id) == 36
    assert body["shareUrl"].endswith(f"/ar-view/{unique_id}")
    assert body["baseImageUrl"].startswith(f"{PUBLIC_PREFIX}/ar-viewer/ar_viewer/")
    assert body["overlayImageUrl"].endswith(".jpg")
    assert len(fake_supabase.storage.uploads) == 2

    fetched = client.get(f"/api/ar-experience/{unique_id}")
    assert fetched.status_code == 200
    ar_data = fetched.json()["arData"]
    assert ar_data["position"] == {"x": 0, "y": 0.5, "z": 0.1}
    assert ar_data["rotation"] == {"x": 1.5708, "y": 0, "z": 0}
    assert ar_data["scale"] == 0.8
    assert _strip_query(ar_data["baseImage"]) == body["baseImageUrl"]
    assert _strip_query(ar_data["overlayImage"]) == body["overlayImageUrl"]


def test_fetch_twice_differs_only_in_cache_buster(client, png_data_url):
    unique_id = _share(client, png_data_url, png_data_url, scale=1.5).json()["uniqueId"]

    first = client.get(f"/api/ar-experience/{unique_id}").json()["arData"]
    second = client.get(f"/api/ar-experience/{unique_id}").json()["arData"]

    for key in ("position", "rotation", "scale"):
        assert first[key] == second[key]
    assert _strip_query(first["baseImage"]) == _strip_query(second["baseImage"])
    first_cb = parse_qs(urlsplit(first["baseImage"]).query)["cb"][0]
    second_cb = parse_qs(urlsplit(second["baseImage"]).query)["cb"][0]
    assert int(second_cb) > int(first_cb)


def test_stored_urls_are_not_mutated_by_fetch(client, fake_supabase, png_data_url):
    unique_id = _share(client, png_data_url, png_data_url).json()["uniqueId"]
    client.get(f"/api/ar-experience/{unique_id}")

    row = fake_supabase.tables["ar_experiences"][0]
    assert "cb=" not in row["base_image"]
    assert "cb=" not in row["overlay_image"]


def test_omitted_transform_uses_zero_vectors_and_unit_scale(client, png_data_url):
    unique_id = _share(client, png_data_url, png_data_url).json()["uniqueId"]

    ar_data = client.get(f"/api/ar-experience/{unique_id}").json()["arData"]
    assert ar_data["position"] == {"x": 0, "y": 0, "z": 0}
    assert ar_data["rotation"] == {"x": 0, "y": 0, "z": 0}
    assert ar_data["scale"] == 1


def test_missing_overlay_is_rejected_without_side_effects(client, fake_supabase, png_data_url):
    response = client.post("/api/share", json={"baseImage": png_data_url})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Missing required images"}
    assert fake_supabase.storage.uploads == []
    assert fake_supabase.tables.get("ar_experiences", []) == []


def test_empty_base_image_counts_as_missing(client, png_data_url):
    response = client.post("/api/share", json={"baseImage": "", "overlayImage": png_data_url})
    assert response.status_code == 400


def test_unknown_id_is_not_found(client):
    response = client.get("/api/ar-experience/abcdefghij0123456789")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "AR experience not found"}


def test_failed_upload_persists_nothing(client, fake_supabase, png_data_url):
    fake_supabase.storage.fail_uploads = 1

    response = _share(client, png_data_url, png_data_url)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Failed to create AR experience"
    assert "storage unavailable" in body["error"]
    assert fake_supabase.tables.get("ar_experiences", []) == []


def test_invalid_image_payload_is_an_upload_failure(client):
    response = _share(client, "data:image/png;base64,bm90IGFuIGltYWdl", make_data_url())

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to create AR experience"


def test_remote_images_are_rehosted_in_the_bucket(client, fake_supabase, remote_images, png_data_url):
    remote = "https://cdn.example.com/images/base.png"
    remote_images.pages[remote] = make_image_bytes("PNG")

    body = _share(client, remote, png_data_url).json()

    assert body["baseImageUrl"].startswith(f"{PUBLIC_PREFIX}/ar-viewer/ar_viewer/")
    assert body["baseImageUrl"] != remote
    assert len(fake_supabase.storage.uploads) == 2


def test_unreachable_remote_image_fails_without_persisting(client, fake_supabase, remote_images, png_data_url):
    response = _share(client, "https://cdn.example.com/missing.png", png_data_url)

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to create AR experience"
    assert fake_supabase.tables.get("ar_experiences", []) == []


def test_non_finite_transform_is_rejected(client, fake_supabase, png_data_url):
    raw = (
        '{"baseImage": "%s", "overlayImage": "%s", "position": {"x": Infinity, "y": 0, "z": 0}}'
        % (png_data_url, png_data_url)
    )
    response = client.post("/api/share", content=raw, headers={"content-type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Invalid scene transform"}
    assert fake_supabase.storage.uploads == []


def test_non_positive_scale_is_rejected(client, png_data_url):
    response = _share(client, png_data_url, png_data_url, scale=0)
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid scene transform"


def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/api/health").json() == {"status": "ok"}


def test_unknown_route_returns_json_404(client):
    response = client.get("/api/nope")

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "API endpoint not found"}
