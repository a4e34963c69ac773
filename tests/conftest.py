import sys
import pytest
from pathlib import Path
from typing import Callable, Generator, List
from datetime import datetime, timedelta, timezone

import yaml

from vocabcore.models import (
    CardState,
    ProgressRecord,
    SchedulerOptions,
    VocabularyItem,
)
from vocabcore.db import ProgressDatabase

UTC = timezone.utc

# 10:00 UTC is 11:00 in Brussels, comfortably inside one study day.
NOW = datetime(2024, 3, 15, 10, 0, 0, tzinfo=UTC)
LEARNER = "learner-1"


# each test runs on cwd to its temp dir
@pytest.fixture(autouse=True)
def go_to_tmpdir(request):
    """
    Run each test with its tmpdir as working directory and first on sys.path,
    so stray .env files or created files never leak between tests.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    sys.path.insert(0, str(tmpdir))
    with tmpdir.as_cwd():
        yield


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def options() -> SchedulerOptions:
    """Anki-like options with two learning steps (1m, 10m)."""
    return SchedulerOptions(
        learning_steps=(1.0, 10.0),
        relearning_steps=(10.0,),
        graduating_interval=1,
        easy_interval=4,
    )


@pytest.fixture
def catalog() -> List[VocabularyItem]:
    """Five Dutch words, deliberately listed out of index order."""
    words = [
        ("fiets", 2, "de fiets", "the bicycle"),
        ("huis", 0, "het huis", "the house"),
        ("boek", 1, "het boek", "the book"),
        ("kat", 4, "de kat", "the cat"),
        ("hond", 3, "de hond", "the dog"),
    ]
    return [
        VocabularyItem(id=vid, index=index, term=term, translation=translation)
        for vid, index, term, translation in words
    ]


@pytest.fixture
def make_record() -> Callable[..., ProgressRecord]:
    """
    Factory for progress records of LEARNER. Rated records default to one rep
    and a last review one minute before NOW.
    """

    def _make(vocabulary_id: str, state: CardState = CardState.New, **kwargs):
        if state != CardState.New:
            kwargs.setdefault("reps", 1)
            kwargs.setdefault("last_reviewed_at", NOW - timedelta(minutes=1))
        return ProgressRecord(
            learner_id=LEARNER,
            vocabulary_id=vocabulary_id,
            state=state,
            **kwargs,
        )

    return _make


# --- Database Fixtures ---
@pytest.fixture
def db_path_file(tmp_path: Path) -> Path:
    return tmp_path / "test_progress.db"


@pytest.fixture(params=["memory", "file"])
def progress_db(
    request, db_path_file: Path
) -> Generator[ProgressDatabase, None, None]:
    """
    Provide an initialized ProgressDatabase, either in-memory or file-backed,
    and close it on teardown.
    """
    if request.param == "memory":
        db_man = ProgressDatabase(":memory:")
    else:
        db_man = ProgressDatabase(db_path_file)
    db_man.initialize_schema()
    try:
        yield db_man
    finally:
        db_man.close_connection()


@pytest.fixture
def catalog_file(tmp_path: Path) -> Path:
    """A YAML catalog with three A1 items and one A2 item."""
    data = {
        "level": "A1",
        "items": [
            {"id": "huis", "term": "het huis", "translation": "the house"},
            {
                "id": "boek",
                "term": "het boek",
                "translation": "the book",
                "example": "Ik lees een boek.",
            },
            {
                "id": "fiets",
                "term": "de fiets",
                "translation": "the bicycle",
                "localized": {"fr": "le vélo"},
            },
            {
                "id": "gezellig",
                "term": "gezellig",
                "translation": "cosy",
                "level": "A2",
            },
        ],
    }
    path = tmp_path / "catalog.yaml"
    path.write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")
    return path
