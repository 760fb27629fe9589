import asyncio
import os
from datetime import datetime, timezone

import pytest

# Settings are loaded at import time and require credentials.
os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("MONGO_URI", "mongodb://localhost:27017")
os.environ.setdefault("ENV", "prod")

from fastapi.testclient import TestClient  # noqa: E402
from pymongo.errors import ServerSelectionTimeoutError  # noqa: E402

from bionova.src.api.rate_limiter import SlidingWindowRateLimiter  # noqa: E402
from bionova.src.core.orchestrator import ResearchOrchestrator  # noqa: E402
from bionova.src.database.cache_store import SearchCacheStore  # noqa: E402
from bionova.src.main import create_app  # noqa: E402
from bionova.src.utils.logger import current_request_id  # noqa: E402


class DeleteResult:
    def __init__(self, deleted_count):
        self.deleted_count = deleted_count


class FakeCollection:
    """In-memory stand-in for a motor collection."""

    def __init__(self):
        self.docs = []
        self.fail_reads = False
        self.fail_writes = False
        self.indexes = []
        self.dropped = False

    async def find_one(self, query, sort=None):
        if self.fail_reads:
            raise ServerSelectionTimeoutError("mongo unreachable")
        matches = [d for d in self.docs if all(d.get(k) == v for k, v in query.items())]
        if sort:
            field, direction = sort[0]
            matches.sort(key=lambda d: d[field], reverse=direction < 0)
        return dict(matches[0]) if matches else None

    async def insert_one(self, document):
        if self.fail_writes:
            raise ServerSelectionTimeoutError("mongo unreachable")
        self.docs.append(dict(document))

    async def delete_many(self, query):
        cutoff = query["created_at"]["$lte"]
        kept = [d for d in self.docs if d["created_at"] > cutoff]
        deleted = len(self.docs) - len(kept)
        self.docs = kept
        return DeleteResult(deleted)

    async def create_index(self, keys):
        name = "_".join(f"{field}_{direction}" for field, direction in keys)
        self.indexes.append(name)
        return name

    async def drop(self):
        self.docs = []
        self.dropped = True


class FakeGateway:
    """Records prompts and replays canned results per operation."""

    def __init__(self):
        self.responses = {}
        self.calls = []
        self.chat_fragments = []
        self.chat_error = None
        self.chat_calls = []
        self.release = None
        self.request_ids = []

    async def generate_structured(self, prompt, operation):
        self.calls.append((prompt, operation))
        self.request_ids.append(current_request_id())
        if self.release is not None:
            await self.release.wait()
        outcome = self.responses[operation]
        if isinstance(outcome, Exception):
            raise outcome
        return _deep_copy(outcome)

    async def stream_chat(self, system_instruction, history, message):
        self.chat_calls.append({"system_instruction": system_instruction, "history": history, "message": message})
        for fragment in self.chat_fragments:
            yield fragment
        if self.chat_error is not None:
            raise self.chat_error


def _deep_copy(value):
    if isinstance(value, dict):
        return {k: _deep_copy(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_deep_copy(v) for v in value]
    return value


def make_report_item(title, year, source_url="https://genelab.nasa.gov/data/GLDS-1"):
    return {
        "title": title,
        "year": year,
        "organism": "Mice",
        "mission_or_experiment": "Rodent Research-1",
        "main_findings": "Bone density decreased.",
        "source_url": source_url,
        "publication_type": "Dataset",
    }


@pytest.fixture
def sample_result():
    return {
        "summary": {
            "overview": "Microgravity affects musculoskeletal health.",
            "years_range": "2014-2020",
            "highlight_points": [{"point": "Bone loss", "explanation": "Mice lose bone mass in orbit."}],
        },
        "detailed_report": [
            make_report_item("Rodent Research 1 bone study", 2014),
            make_report_item("Muscle atrophy in spaceflight mice", 2017, source_url=None),
        ],
        "graph": {
            "nodes": [{"id": "Mice", "type": "organism"}, {"id": "ISS", "type": "mission"}],
            "links": [{"source": "Mice", "target": "ISS", "label": "flown on"}],
        },
    }


@pytest.fixture
def default_filters():
    return {
        "yearRange": [1960, datetime.now(timezone.utc).year],
        "organisms": [],
        "missions": [],
        "researchAreas": [],
        "publicationTypes": [],
    }


@pytest.fixture
def fake_collection():
    return FakeCollection()


@pytest.fixture
def cache_store(fake_collection):
    return SearchCacheStore(collection=fake_collection)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def orchestrator(fake_gateway, cache_store):
    return ResearchOrchestrator(gateway=fake_gateway, cache_store=cache_store, enforce_source_allowlist=True)


@pytest.fixture
def app(orchestrator):
    return create_app(orchestrator=orchestrator, rate_limiter=SlidingWindowRateLimiter(max_requests=1000, window_seconds=60))


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def run(coro):
    return asyncio.run(coro)
