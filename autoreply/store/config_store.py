"""Page and global configuration storage backed by flat JSON files.

Reads fail soft: a missing or corrupt file yields an empty page list or the
default global record, and a malformed page record is skipped on its own.
Problems are only reported to the process log.
Writes overwrite the whole file without locking.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from autoreply.models import GlobalConfig, PageConfig, PageUpdate, new_page_id

logger = logging.getLogger(__name__)

PAGES_FILENAME = "pages.json"
GLOBAL_CONFIG_FILENAME = "config.json"


class PageNotFoundError(Exception):
    """Raised when a page id does not exist in the store."""

    pass


class ConfigStore:
    """Loads and saves page configurations and the global defaults."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.pages_path = self.data_dir / PAGES_FILENAME
        self.global_config_path = self.data_dir / GLOBAL_CONFIG_FILENAME

    # --- pages ---

    def load_pages(self) -> list[PageConfig]:
        data = _read_json(self.pages_path)
        if data is None:
            return []
        if not isinstance(data, list):
            logger.warning("Pages file at %s must be a JSON array, using no pages", self.pages_path)
            return []
        pages = []
        for index, item in enumerate(data):
            try:
                pages.append(PageConfig.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping malformed page record %d in %s: %s", index, self.pages_path, exc)
        return pages

    def save_pages(self, pages: list[PageConfig]) -> None:
        payload = [page.model_dump(by_alias=True) for page in pages]
        _write_json(self.pages_path, payload)

    def get_page(self, page_id: str) -> PageConfig | None:
        for page in self.load_pages():
            if page.id == page_id:
                return page
        return None

    def create_page(self, **fields: object) -> PageConfig:
        """Create a page, generating defaults for any omitted field."""
        pages = self.load_pages()
        values = {k: v for k, v in fields.items() if v not in (None, "")}
        values.setdefault("name", f"New Page {len(pages) + 1}")
        values.setdefault("id", new_page_id())
        page = PageConfig.model_validate(values)
        # Ids are millisecond timestamps; keep them unique within the store.
        existing = {p.id for p in pages}
        while page.id in existing:
            page = page.model_copy(update={"id": f"{page.id}_1"})
        pages.append(page)
        self.save_pages(pages)
        return page

    def update_page(self, page_id: str, update: PageUpdate) -> PageConfig:
        pages = self.load_pages()
        for index, page in enumerate(pages):
            if page.id == page_id:
                pages[index] = update.apply(page)
                self.save_pages(pages)
                return pages[index]
        raise PageNotFoundError(f"Page not found: {page_id}")

    def delete_page(self, page_id: str) -> None:
        pages = [p for p in self.load_pages() if p.id != page_id]
        self.save_pages(pages)

    # --- global config ---

    def load_global_config(self) -> GlobalConfig:
        data = _read_json(self.global_config_path)
        if data is None:
            return GlobalConfig()
        if not isinstance(data, dict):
            logger.warning("Config file at %s must be a JSON object, using defaults", self.global_config_path)
            return GlobalConfig()
        try:
            return GlobalConfig.model_validate(data)
        except ValidationError as exc:
            logger.warning("Config file at %s is malformed, using defaults: %s", self.global_config_path, exc)
            return GlobalConfig()

    def save_global_config(self, config: GlobalConfig) -> None:
        _write_json(self.global_config_path, config.model_dump(by_alias=True))


def _read_json(path: Path) -> object | None:
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Failed to load %s: %s", path, exc)
        return None


def _write_json(path: Path, data: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
