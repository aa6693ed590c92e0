#!/usr/bin/env python3
"""
Example client for the Business Registry API.
This script demonstrates paging, counting and saving a filtered list.
"""

import json
import os
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urlencode

import requests


class RegistryClient:
    """Client for interacting with the Business Registry API."""

    def __init__(self, base_url: str = "http://localhost:8000", user_id: Optional[str] = None):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id

    def health_check(self) -> Dict[str, Any]:
        """Check if the API is running."""
        response = requests.get(f"{self.base_url}/")
        return response.json()

    def list_businesses(
        self,
        filters: Optional[Dict[str, Any]] = None,
        sort_by: str = "revenue",
        order: Optional[str] = None,
        limit: int = 100,
        cursor: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fetch one page of businesses."""
        params = dict(filters or {})
        params.update({"sortBy": sort_by, "limit": limit})
        if order:
            params["order"] = order
        if cursor:
            params["cursor"] = cursor
        response = requests.get(f"{self.base_url}/businesses", params=params)
        response.raise_for_status()
        return response.json()

    def count_businesses(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Count businesses matching the filters."""
        response = requests.get(f"{self.base_url}/businesses/count", params=filters or {})
        response.raise_for_status()
        return response.json()

    def bounds(self) -> Dict[str, Any]:
        """Get latest-year revenue and profit bounds."""
        response = requests.get(f"{self.base_url}/businesses/bounds")
        response.raise_for_status()
        return response.json()

    def save_list_stream(
        self, name: str, filters: Optional[Dict[str, Any]] = None
    ) -> Iterator[Tuple[str, Dict[str, Any]]]:
        """Save every matching business as a list, yielding (event, data) pairs."""
        fq = urlencode(filters or {}, doseq=True)
        headers = {"Accept": "text/event-stream"}
        if self.user_id:
            headers["X-User-Id"] = self.user_id
        with requests.get(
            f"{self.base_url}/lists/save/stream",
            params={"name": name, "fq": fq},
            headers=headers,
            stream=True,
        ) as response:
            response.raise_for_status()
            event_type = None
            for line in response.iter_lines(decode_unicode=True):
                if not line:
                    event_type = None
                    continue
                if line.startswith("event: "):
                    event_type = line[7:]
                elif line.startswith("data: ") and event_type:
                    yield event_type, json.loads(line[6:])


def iterate_pages(
    client: RegistryClient, filters: Dict[str, Any], limit: int = 50, max_pages: int = 3
) -> List[Dict[str, Any]]:
    """Follow cursors for a few pages and collect the rows."""
    rows: List[Dict[str, Any]] = []
    cursor = None
    for _ in range(max_pages):
        page = client.list_businesses(filters, limit=limit, cursor=cursor)
        rows.extend(page["items"])
        cursor = page["cursor"]["next"]
        if not cursor:
            break
    return rows


def main():
    """Main function to demonstrate the Business Registry API."""
    client = RegistryClient(user_id=os.getenv("REGISTRY_USER_ID", "demo-user"))
    filters = {"city": "oslo", "revenueBucket": "1-10M"}

    print("🏢 Business Registry API Client Demo")
    print("=" * 50)

    # Health check
    print("\n1. Checking API health...")
    try:
        health = client.health_check()
        print(f"✅ API Status: {health}")
    except requests.exceptions.ConnectionError:
        print("❌ Could not connect to API. Make sure the server is running with: python run.py")
        return

    print("\n2. Financial bounds...")
    print(f"✅ Bounds: {client.bounds()}")

    print(f"\n3. Counting businesses for {filters}...")
    count = client.count_businesses(filters)
    print(f"✅ Total: {count['total']} ({count['tookMs']}ms)")

    print("\n4. Paging by revenue...")
    rows = iterate_pages(client, filters)
    for row in rows[:10]:
        print(f"   {row['org_number']}  {row['name']}  revenue={row['revenue']}")
    print(f"✅ Fetched {len(rows)} rows")

    print("\n5. Saving the result set as a list...")
    try:
        for event, data in client.save_list_stream("Oslo 1-10M", filters):
            print(f"   {event}: {data}")
    except requests.exceptions.HTTPError as e:
        print(f"❌ Save failed: {e}")
        return

    print("\n🎉 Demo completed!")


if __name__ == "__main__":
    main()
