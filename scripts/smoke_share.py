#!/usr/bin/env python3
"""
Smoke test for a running ARShare backend.

Shares a generated scene, fetches it back twice and checks the transform
survives the round trip. Writes the share QR code to ``share_qr.png``.

Usage:
    uvicorn app.main:app --port 3000   (from backend/)
    python scripts/smoke_share.py [BACKEND_URL]
"""

import base64
import io
import sys
import uuid
from pathlib import Path

import requests
from PIL import Image, ImageDraw

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from ar_client.share_link import make_qr_png  # noqa: E402

BACKEND_URL = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:3000"

TRANSFORM = {
    "position": {"x": 0, "y": 0.5, "z": 0.1},
    "rotation": {"x": 1.5708, "y": 0, "z": 0},
    "scale": 0.8,
}


def make_data_url(color: str) -> str:
    img = Image.new("RGBA", (256, 192), color="white")
    draw = ImageDraw.Draw(img)
    draw.ellipse([64, 32, 192, 160], fill=color)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def test_health():
    try:
        response = requests.get(f"{BACKEND_URL}/api/health", timeout=5)
        if response.status_code == 200:
            print("✅ Backend is running")
            return True
        print(f"❌ Backend returned status {response.status_code}")
        return False
    except requests.exceptions.ConnectionError:
        print("❌ Cannot connect to backend")
        print("   Make sure the backend is running: uvicorn app.main:app --port 3000")
        return False


def test_share():
    print("📤 Sharing a scene")
    payload = {"baseImage": make_data_url("blue"), "overlayImage": make_data_url("red")}
    payload.update(TRANSFORM)

    response = requests.post(f"{BACKEND_URL}/api/share", json=payload, timeout=60)
    data = response.json()
    if response.status_code != 200 or not data.get("success"):
        print(f"❌ Share failed ({response.status_code}): {data.get('message')}")
        if data.get("error"):
            print(f"   Error: {data['error']}")
        return None

    print(f"✅ Shared as {data['uniqueId']}")
    print(f"   Share URL: {data['shareUrl']}")
    Path("share_qr.png").write_bytes(make_qr_png(data["shareUrl"]))
    print("   QR code written to share_qr.png")
    return data["uniqueId"]


def test_fetch(unique_id):
    print(f"📥 Fetching {unique_id} twice")
    results = []
    for _ in range(2):
        response = requests.get(f"{BACKEND_URL}/api/ar-experience/{unique_id}", timeout=15)
        if response.status_code != 200:
            print(f"❌ Fetch HTTP error: {response.status_code}")
            return False
        results.append(response.json()["arData"])

    for key, expected in TRANSFORM.items():
        if results[0][key] != expected:
            print(f"❌ {key} mismatch: {results[0][key]} != {expected}")
            return False
    if results[0]["baseImage"] == results[1]["baseImage"]:
        print("❌ Image URLs were not cache-busted")
        return False

    print("✅ Transform round-trips and URLs are cache-busted")
    return True


def test_not_found():
    response = requests.get(f"{BACKEND_URL}/api/ar-experience/{uuid.uuid4().hex[:20]}", timeout=15)
    if response.status_code == 404 and response.json().get("message") == "AR experience not found":
        print("✅ Unknown ids return 404")
        return True
    print(f"❌ Unexpected response for unknown id: {response.status_code}")
    return False


def main():
    print("🧪 ARShare Backend Smoke Test")
    print("=" * 40)

    if not test_health():
        return 1

    unique_id = test_share()
    if not unique_id:
        return 1

    success = test_fetch(unique_id) and test_not_found()

    print("\n" + "=" * 40)
    print("🎉 All smoke tests passed!" if success else "❌ Some tests failed. Check backend logs for details.")
    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
