import asyncio
import json
import unittest

import httpx

from vet_agent_loop.errors import TransientExternalError
from vet_agent_loop.tool import ToolContext
from vet_agent_loop.tools.maps.map_search_tool import MapSearchTool
from vet_agent_loop.tools.web.tavily_search_provider import TavilySearchProvider


class _Recorder:
    def __init__(self, status: int, payload: dict):
        self._status = status
        self._payload = payload
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self._status, json=self._payload)


def _context() -> ToolContext:
    return ToolContext(request_id="req1", identity="+5491100000000")


class TavilySearchProviderTests(unittest.TestCase):
    def test_posts_query_and_dedupes_urls(self) -> None:
        recorder = _Recorder(
            200,
            {
                "results": [
                    {"title": "A", "url": "https://a.example", "content": "uno", "score": 0.9},
                    {"title": "A again", "url": "https://a.example", "content": "dos"},
                    {"url": "https://b.example", "content": "tres"},
                ]
            },
        )
        provider = TavilySearchProvider("tvly-key", transport=httpx.MockTransport(recorder))

        hits = asyncio.run(provider.search("vacunas", 5, site="vet.org"))

        self.assertEqual(["https://a.example", "https://b.example"], [h.url for h in hits])
        self.assertEqual("(no title)", hits[1].title)
        body = json.loads(recorder.requests[0].content)
        self.assertEqual("site:vet.org vacunas", body["query"])
        self.assertEqual(5, body["max_results"])
        self.assertEqual("Bearer tvly-key", recorder.requests[0].headers["Authorization"])

    def test_error_status_raises(self) -> None:
        provider = TavilySearchProvider("tvly-key", transport=httpx.MockTransport(_Recorder(500, {})))

        with self.assertRaises(httpx.HTTPStatusError):
            asyncio.run(provider.search("vacunas", 5))


class MapSearchToolTests(unittest.TestCase):
    def test_formats_places(self) -> None:
        recorder = _Recorder(
            200,
            {
                "places": [
                    {
                        "id": "p1",
                        "displayName": {"text": "Clínica Veterinaria Sur"},
                        "formattedAddress": "Av. Siempre Viva 123",
                        "rating": 4.7,
                        "nationalPhoneNumber": "011 1234-5678",
                    }
                ]
            },
        )
        tool = MapSearchTool("places-key", transport=httpx.MockTransport(recorder))
        args = tool.validate({"query": "veterinaria", "latitude": -34.6, "longitude": -58.4, "maxResults": 5})

        result = asyncio.run(tool.execute(args, _context()))

        self.assertTrue(result.ok)
        self.assertEqual(1, result.data["count"])
        place = result.data["results"][0]
        self.assertEqual("Clínica Veterinaria Sur", place["name"])
        self.assertEqual("011 1234-5678", place["phone"])
        body = json.loads(recorder.requests[0].content)
        self.assertEqual(5, body["maxResultCount"])
        self.assertEqual(["veterinary_care", "pet_store"], body["includedTypes"])
        self.assertEqual("places-key", recorder.requests[0].headers["X-Goog-Api-Key"])

    def test_rate_limit_is_transient(self) -> None:
        tool = MapSearchTool("places-key", transport=httpx.MockTransport(_Recorder(429, {})))
        args = tool.validate({"query": "veterinaria", "latitude": 0, "longitude": 0})

        with self.assertRaises(TransientExternalError):
            asyncio.run(tool.execute(args, _context()))

    def test_bad_request_is_failure_result(self) -> None:
        tool = MapSearchTool("places-key", transport=httpx.MockTransport(_Recorder(400, {"error": "bad"})))
        args = tool.validate({"query": "veterinaria", "latitude": 0, "longitude": 0})

        result = asyncio.run(tool.execute(args, _context()))

        self.assertFalse(result.ok)
        self.assertIn("HTTP 400", result.error)


if __name__ == "__main__":
    unittest.main()
