import logging
from typing import List

import httpx

from ..errors import FetchError

logger = logging.getLogger(__name__)

# --- 1. CONFIGURATION ---

# TED Talks (RapidAPI)
TED_TALKS_PATH = "/talks"
TED_TALKS_PARAMS = {"from_record_date": "2020-01-01", "min_duration": "300"}

# ProPublica Nonprofit Explorer
PROPUBLICA_SEARCH_URL = "https://projects.propublica.org/nonprofits/api/v2/search.json"

# Fallbacks for fields the upstream leaves out
NO_DESCRIPTION = "No description available"
NO_WEBSITE = "Not available"
NO_MISSION = "No mission statement"


def _text(value):
    return None if value is None else str(value)


# --- 2. THE FETCHERS ---
class UpstreamFetcher:
    """One outbound GET, decoded as JSON and normalized into records.

    Fetchers only read upstream. Writing to storage is the pipeline's job.
    """

    name = "upstream"

    def __init__(self, client: httpx.Client):
        self.client = client

    def _get_json(self, url, **kwargs):
        try:
            response = self.client.get(url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as exc:
            raise FetchError(f"{self.name} request failed: {exc}") from exc
        except ValueError as exc:
            raise FetchError(f"{self.name} returned a non-JSON body") from exc

    def fetch(self) -> List[dict]:
        url, options = self.request()
        payload = self._get_json(url, **options)
        try:
            records = [self.normalize(item) for item in self.items(payload)]
        except (KeyError, TypeError, AttributeError) as exc:
            raise FetchError(f"{self.name} returned a malformed payload") from exc
        logger.info("Fetched %d records from %s", len(records), self.name)
        return records

    def request(self):
        raise NotImplementedError

    def items(self, payload):
        raise NotImplementedError

    def normalize(self, item) -> dict:
        raise NotImplementedError


class TedTalksFetcher(UpstreamFetcher):
    name = "TED Talks API"

    def __init__(self, client: httpx.Client, api_key: str, api_host: str):
        super().__init__(client)
        self.api_key = api_key
        self.api_host = api_host

    def request(self):
        return f"https://{self.api_host}{TED_TALKS_PATH}", {
            "params": TED_TALKS_PARAMS,
            "headers": {"x-rapidapi-key": self.api_key, "x-rapidapi-host": self.api_host},
        }

    def items(self, payload):
        results = payload["result"]["results"]
        if not isinstance(results, list):
            raise TypeError("result.results is not a list")
        return results

    def normalize(self, talk) -> dict:
        return {
            "external_id": _text(talk.get("id")),
            "title": talk.get("title"),
            "speaker": talk.get("speaker"),
            "description": talk.get("description"),
            "duration": _text(talk.get("duration")),
            "url": talk.get("url"),
            "thumbnail": talk.get("thumbnail"),
            "type": "Video",
        }


class NgoFetcher(UpstreamFetcher):
    name = "ProPublica Nonprofit API"

    def __init__(self, client: httpx.Client, query: str = "environment"):
        super().__init__(client)
        self.query = query

    def request(self):
        return PROPUBLICA_SEARCH_URL, {"params": {"q": self.query}}

    def items(self, payload):
        organizations = payload["organizations"]
        if not isinstance(organizations, list):
            raise TypeError("organizations is not a list")
        return organizations

    def normalize(self, org) -> dict:
        return {
            "external_id": _text(org.get("ein")),
            "name": org.get("name"),
            "type": "NGO",
            "description": org.get("ntee_code") or NO_DESCRIPTION,
            "website": org.get("website") or NO_WEBSITE,
            "location": f"{org.get('city')}, {org.get('state')}",
            "mission": org.get("ntee_classification") or NO_MISSION,
        }
