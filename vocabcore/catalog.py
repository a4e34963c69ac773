"""
YAML vocabulary catalog.

A catalog file looks like::

    level: A1            # optional, default level for every item
    items:
      - id: huis
        term: het huis
        translation: the house
        example: Het huis is groot.
      - id: fiets
        term: de fiets
        translation: the bicycle
        localized:
          fr: le vélo
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import CatalogLoadError
from .models import VocabularyItem
from .repository import CatalogReader

logger = logging.getLogger(__name__)


class _RawYAMLVocabEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    term: str = Field(..., min_length=1)
    translation: str
    example: Optional[str] = None
    level: Optional[str] = None
    index: Optional[int] = Field(default=None, ge=0)
    localized: Dict[str, str] = Field(default_factory=dict)


class _RawYAMLCatalogFile(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Optional[str] = None
    items: List[_RawYAMLVocabEntry] = Field(default_factory=list)


class YAMLCatalog(CatalogReader):
    """Reads vocabulary items from a single YAML file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._items: Optional[List[VocabularyItem]] = None

    def _load(self) -> List[VocabularyItem]:
        """
        Parse and validate the catalog file.

        Raises:
            CatalogLoadError: If the file is missing, is not valid YAML, does
                not match the catalog schema, or repeats an id.
        """
        try:
            raw_yaml_content = yaml.safe_load(
                self.path.read_text(encoding="utf-8")
            )
        except FileNotFoundError:
            raise CatalogLoadError(
                f"Catalog file not found: {self.path}"
            ) from None
        except IOError as e:
            raise CatalogLoadError(
                f"Could not read catalog {self.path}: {e}", original_exception=e
            ) from e
        except yaml.YAMLError as e:
            raise CatalogLoadError(
                f"Invalid YAML syntax in {self.path}: {e}", original_exception=e
            ) from e

        if not isinstance(raw_yaml_content, dict):
            raise CatalogLoadError(
                f"Top level of {self.path} must be a dictionary (catalog object)."
            )

        try:
            catalog = _RawYAMLCatalogFile.model_validate(raw_yaml_content)
        except ValidationError as e:
            error_details = e.errors()[0]
            field = ".".join(map(str, error_details["loc"]))
            raise CatalogLoadError(
                f"Validation error in {self.path}, field '{field}': {error_details['msg']}",
                original_exception=e,
            ) from e

        items: List[VocabularyItem] = []
        seen_ids = set()
        for position, entry in enumerate(catalog.items):
            if entry.id in seen_ids:
                raise CatalogLoadError(
                    f"Duplicate vocabulary id '{entry.id}' in {self.path}"
                )
            seen_ids.add(entry.id)
            items.append(
                VocabularyItem(
                    id=entry.id,
                    index=entry.index if entry.index is not None else position,
                    term=entry.term,
                    translation=entry.translation,
                    example=entry.example,
                    level=entry.level or catalog.level,
                    localized=entry.localized,
                )
            )

        items.sort(key=lambda item: item.index)
        logger.info(f"Loaded {len(items)} vocabulary items from {self.path}")
        return items

    def list_items(self, level: Optional[str] = None) -> List[VocabularyItem]:
        if self._items is None:
            self._items = self._load()
        if level is None:
            return list(self._items)
        return [item for item in self._items if item.level == level]
