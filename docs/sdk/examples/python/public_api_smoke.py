import os
import sys

import requests

base_url = os.getenv("DEALFINDER_BASE_URL", "http://localhost:8000").rstrip("/")
search_term = os.getenv("DEALFINDER_SEARCH", "")


def main() -> int:
    featured_response = requests.get(f"{base_url}/api/promotions/featured", timeout=15)
    featured_response.raise_for_status()

    search_response = requests.get(
        f"{base_url}/api/promotions/search",
        params={"q": search_term, "sortBy": "ending-soon", "page": 1, "limit": 5},
        timeout=15,
    )
    search_response.raise_for_status()

    featured = featured_response.json()
    results = search_response.json()
    print(f"Featured promotions: {featured['count']}")
    print(f"Search pages: {results['totalPages']}")
    for promotion in results["data"]:
        print(f"- {promotion['title']} ({promotion['business']['name']}) ends {promotion['endDate']}")
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except requests.RequestException as exc:
        print(f"Public API smoke check failed: {exc}", file=sys.stderr)
        raise SystemExit(1)
