"""
Manual end-to-end check against a running server.
Run this from the project root: python scripts/smoke_reports.py [photo.jpg]
"""
import os
import sys
from pathlib import Path

import requests
from dotenv import load_dotenv

env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

BASE_URL = os.getenv("SMOKE_BASE_URL", "http://127.0.0.1:3005")

REPORT = {
    "category": "road_damage",
    "note": "Large pothole near the market entrance",
    "area_label": "Near 8.484, -13.234",
    "lat": 8.48412,
    "lng": -13.23441,
    "accuracy_m": 25,
    "district": "Western Area Urban",
}


def post_json_report():
    print("\n=== Step 1: JSON report ===")
    response = requests.post(f"{BASE_URL}/api/reports", json=REPORT, timeout=10)
    print(f"Status: {response.status_code}")
    print(response.json())
    return response.json().get("id")


def post_multipart_report(photo_path):
    print("\n=== Step 2: Multipart report with a photo ===")
    if not photo_path or not os.path.exists(photo_path):
        print("⚠️  No photo given, skipping multipart upload")
        return None
    data = {k: str(v) for k, v in REPORT.items()}
    data["anonymous"] = "yes"
    with open(photo_path, "rb") as f:
        files = [("photo1", (os.path.basename(photo_path), f, "image/jpeg"))]
        response = requests.post(f"{BASE_URL}/api/reports", data=data, files=files, timeout=30)
    print(f"Status: {response.status_code}")
    print(response.json())
    return response.json().get("id")


def list_reports():
    print("\n=== Step 3: Walk the list two at a time ===")
    cursor = None
    page = 0
    while page < 5:
        params = {"limit": 2, "category": REPORT["category"]}
        if cursor:
            params["cursor"] = cursor
        response = requests.get(f"{BASE_URL}/api/reports", params=params, timeout=10)
        body = response.json()
        page += 1
        print(f"Page {page}: {[item['id'] for item in body.get('items', [])]}")
        cursor = body.get("next_cursor")
        if not cursor:
            break


def locate():
    print("\n=== Step 4: Locate ===")
    response = requests.post(
        f"{BASE_URL}/api/locate", json={"lat": REPORT["lat"], "lng": REPORT["lng"]}, timeout=10
    )
    print(response.json())


if __name__ == "__main__":
    print(requests.get(f"{BASE_URL}/health/db", timeout=5).text)
    post_json_report()
    post_multipart_report(sys.argv[1] if len(sys.argv) > 1 else None)
    list_reports()
    locate()
