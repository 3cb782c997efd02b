import asyncio
import csv
import os
import sys
import tempfile
from pathlib import Path

# Keep test runs offline and out of the working tree.
os.environ["GEMINI_API_KEY"] = ""
os.environ.setdefault("EVENT_LOG_DIR", tempfile.mkdtemp(prefix="ched-events-"))

# Ensure tests can import project modules from this repo layout.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest  # noqa: E402

from ched_chat.records.store import RecordStore  # noqa: E402
from ched_chat.schemas import Part, Turn  # noqa: E402

CHED_HEADERS = [
    "INSTITUTION NAME",
    "INSTITUTION TYPE",
    "MUNICIPALITY",
    "PROVINCE",
    "REGION",
    "WEBSITE ADDRESS",
    "TELEPHONE NO",
]


class FakeResponse:
    def __init__(self, status_code: int = 200, body=None, text: str = ""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakePost:
    """Stand-in for ``post_json`` that replays scripted results per model."""

    def __init__(self, script: dict | None = None, default=None):
        self.script = script or {}
        self.default = default
        self.calls: list[dict] = []

    def __call__(self, url, payload, timeout, headers=None, retries=None):
        model = url.rsplit("/models/", 1)[-1].split(":", 1)[0]
        self.calls.append(
            {
                "model": model,
                "url": url,
                "payload": payload,
                "timeout": timeout,
                "headers": headers,
                "retries": retries,
            }
        )
        result = self.script.get(model, self.default)
        if isinstance(result, Exception):
            raise result
        if result is None:
            raise AssertionError(f"Unexpected call for model {model}")
        return result

    @property
    def models(self) -> list[str]:
        return [call["model"] for call in self.calls]


def gemini_ok(text: str) -> FakeResponse:
    return FakeResponse(200, {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]})


def user(text: str) -> Turn:
    return Turn(role="user", parts=[Part(text=text)])


def model_turn(text: str) -> Turn:
    return Turn(role="model", parts=[Part(text=text)])


def write_csv(path: Path, rows: list[dict], headers: list[str] | None = None) -> Path:
    headers = headers or CHED_HEADERS
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=headers)
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


def loaded_store(path: Path) -> RecordStore:
    store = RecordStore()
    assert asyncio.run(store.load(path)) is True
    return store


@pytest.fixture
def metro_csv(tmp_path) -> Path:
    return write_csv(
        tmp_path / "institutions.csv",
        [
            {
                "INSTITUTION NAME": "State University",
                "INSTITUTION TYPE": "Public",
                "MUNICIPALITY": "Metro City",
                "PROVINCE": "Metro Province",
                "REGION": "NCR",
            }
        ],
    )


@pytest.fixture
def metro_store(metro_csv) -> RecordStore:
    return loaded_store(metro_csv)


@pytest.fixture
def sample_csv(tmp_path) -> Path:
    rows = [
        {
            "INSTITUTION NAME": "University of the Philippines Diliman",
            "INSTITUTION TYPE": "SUC",
            "MUNICIPALITY": "Quezon City",
            "PROVINCE": "Metro Manila",
            "REGION": "NCR",
            "WEBSITE ADDRESS": "upd.edu.ph",
            "TELEPHONE NO": "(02) 8981-8500",
        },
        {
            "INSTITUTION NAME": "Saint Louis University",
            "INSTITUTION TYPE": "Private HEI",
            "MUNICIPALITY": "Baguio City",
            "PROVINCE": "Benguet",
            "REGION": "CAR",
        },
        {
            "INSTITUTION NAME": "Ateneo de Manila University",
            "INSTITUTION TYPE": "Private HEI",
            "MUNICIPALITY": "Quezon City",
            "PROVINCE": "Metro Manila",
            "REGION": "NCR",
        },
        {
            "INSTITUTION NAME": "",
            "INSTITUTION TYPE": "Private HEI",
            "MUNICIPALITY": "Nowhere",
        },
    ]
    return write_csv(tmp_path / "institutions.csv", rows)


@pytest.fixture
def sample_store(sample_csv) -> RecordStore:
    return loaded_store(sample_csv)
