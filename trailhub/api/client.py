"""
Interactive API Client.

This script provides a command-line front-end for the TrailHub API server.
It keeps one visitor session (client id) and lets you browse trails, sign in,
toggle favorites, record completions, and look at your stats.
"""

import requests
import json
import traceback
import uuid
from datetime import date
from typing import Any, Dict, Optional

# Configuration
API_BASE_URL = "http://localhost:8000"
DIFFICULTY_LABELS = {
    "beginner": "🟢 beginner",
    "intermediate": "🟡 intermediate",
    "advanced": "🔴 advanced",
}


class TrailHubAPIClient:
    """
    Synchronous client for the TrailHub API.
    """

    def __init__(self, base_url: str = API_BASE_URL, client_id: Optional[str] = None):
        self.base_url = base_url.rstrip('/')
        self.client_id = client_id or str(uuid.uuid4())[:8]
        self.session = requests.Session()
        self.session.headers["X-Client-Id"] = self.client_id

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and return the JSON body, raising RuntimeError with the server's detail."""
        kwargs.setdefault("timeout", 10)
        response = self.session.request(method, f"{self.base_url}{path}", **kwargs)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except (json.JSONDecodeError, ValueError):
                detail = response.text
            raise RuntimeError(f"{response.status_code}: {detail}")
        return response.json()

    def health_check(self) -> Dict[str, Any]:
        """Check if the API is healthy."""
        try:
            return self._request("GET", "/health", timeout=5)
        except requests.RequestException as e:
            raise RuntimeError(f"Health check failed: {e}")

    def list_trails(self, query: str = "", difficulty: str = "all", country: str = "all",
                    refresh: bool = False) -> Dict[str, Any]:
        params = {"q": query, "difficulty": difficulty, "country": country}
        if refresh:
            params["refresh"] = "true"
        return self._request("GET", "/api/trails", params=params)

    def sign_in(self, email: str, password: str) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/sign-in", json={"email": email, "password": password})

    def sign_out(self) -> Dict[str, Any]:
        return self._request("POST", "/api/auth/sign-out")

    def toggle_favorite(self, trail_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/api/favorites/{trail_id}/toggle")

    def save_completion(self, trail_id: str, rating: int, review: str = "",
                        completed_at: Optional[date] = None) -> Dict[str, Any]:
        payload = {
            "trail_id": trail_id,
            "rating": rating,
            "review": review,
            "completed_at": (completed_at or date.today()).isoformat(),
        }
        return self._request("POST", "/api/completions", json=payload)

    def stats(self) -> Dict[str, Any]:
        return self._request("GET", "/api/stats")


def print_trails(result: Dict[str, Any]) -> None:
    if result.get("status") == "errored":
        print(f"❌ {result.get('error')} (use /refresh to retry)")
        return
    favorites = set(result.get("favorites", []))
    print(f"📍 {result.get('count', 0)} trails")
    for t in result.get("trails", []):
        heart = "❤️ " if t["id"] in favorites else "  "
        label = DIFFICULTY_LABELS.get(t["difficulty"], t["difficulty"])
        print(f" {heart}[{t['id']}] {t['name']} - {t['country']}, {t['region']} | {label} | "
              f"{t['distance_km']}km | {t['price']}")


def interactive_mode():
    """Run the interactive CLI loop."""
    client = TrailHubAPIClient()

    print("\n" + "="*80)
    print("TRAILHUB - INTERACTIVE CLIENT")
    print("="*80)

    # Check server health
    try:
        health = client.health_check()
        print(f"✅ Server Status: {health.get('status')} | {health.get('message')}")
    except Exception as e:
        print(f"❌ Connection Error: {e}")
        print(f"Ensure server is running at {API_BASE_URL}")
        return

    print(f"🔹 Client ID: {client.client_id}")
    print("-" * 80)
    print("Commands:")
    print("  /search [text] [difficulty] [country] - List trails")
    print("  /refresh                               - Reload the catalog")
    print("  /login <email> <password>              - Sign in")
    print("  /logout                                - Sign out")
    print("  /fav <trail_id>                        - Toggle favorite")
    print("  /done <trail_id> <rating 1-5> [review] - Record a completion")
    print("  /stats                                 - Your stats")
    print("  /quit                                  - Exit")
    print("="*80 + "\n")

    while True:
        try:
            user_input = input(f"\n[{client.client_id}] > ").strip()

            if not user_input:
                continue

            command, _, rest = user_input.partition(" ")
            args = rest.split()
            command = command.lower()

            if command in ['/quit', '/exit']:
                print("\n👋 Goodbye!")
                break

            if command == '/search':
                print_trails(client.list_trails(*args[:3]))

            elif command == '/refresh':
                print_trails(client.list_trails(refresh=True))

            elif command == '/login' and len(args) == 2:
                me = client.sign_in(args[0], args[1])
                print(f"\n👋 Welcome, {me.get('display_name')}!")

            elif command == '/logout':
                client.sign_out()
                print("\n🧹 Signed out.")

            elif command == '/fav' and args:
                result = client.toggle_favorite(args[0])
                print("❤️  Added to favorites." if result["favorite"] else "🤍 Removed from favorites.")

            elif command == '/done' and len(args) >= 2:
                record = client.save_completion(args[0], int(args[1]), " ".join(args[2:]))
                print(f"🏆 Completion saved ({record['rating']}/5).")

            elif command == '/stats':
                s = client.stats()
                print(f"📊 {s['completed_count']} completed | {s['total_distance']:.1f}km | "
                      f"{s['favorite_count']} favorites")

            else:
                print("❓ Unknown command or missing arguments.")

        except KeyboardInterrupt:
            print("\n\n👋 Interrupted.")
            break

        except RuntimeError as e:
            print(f"\n❌ {e}")

        except Exception as e:
            print(f"\n❌ Client Error: {e}")
            traceback.print_exc()

if __name__ == "__main__":
    interactive_mode()
