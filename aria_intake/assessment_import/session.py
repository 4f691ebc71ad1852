"""Debounced import session feeding a live preview to the host form."""
from __future__ import annotations

import asyncio
import copy
import logging
import os
from collections.abc import Awaitable, Callable

from .catalog import AssessmentCatalog
from .errors import CatalogError
from .parser import ParseOutcome, ParsedAssessmentData, parse_assessment_text

logger = logging.getLogger(__name__)

DEBOUNCE_ENV = "ARIA_IMPORT_DEBOUNCE_MS"
DEFAULT_DEBOUNCE_MS = 500

STATE_COLLECTING = "collecting"
STATE_PREVIEWING = "previewing"

ImportCallback = Callable[[ParsedAssessmentData], None]
ClipboardReader = Callable[[], Awaitable[str]]


def resolve_debounce_ms(value: int | None) -> int:
    if value is not None:
        return max(value, 0)
    env_value = os.environ.get(DEBOUNCE_ENV)
    if env_value:
        try:
            return max(int(env_value), 0)
        except ValueError:
            logger.debug("Invalid %s value: %s", DEBOUNCE_ENV, env_value)
    return DEFAULT_DEBOUNCE_MS


class ImportSession:
    """Holds pasted text, re-parses it after a quiet period, and hands results on.

    Every text change or instrument selection restarts the debounce timer on the
    running event loop. A parse that has started always runs to completion; when
    no loop is running the parse happens immediately.
    """

    def __init__(
        self,
        catalog: AssessmentCatalog,
        on_import: ImportCallback,
        *,
        debounce_ms: int | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self.catalog = catalog
        self.on_import = on_import
        self.debounce_ms = resolve_debounce_ms(debounce_ms)
        self.text = ""
        self.selected_type: str | None = None
        self.outcome: ParseOutcome | None = None
        self.is_parsing = False
        self._loop = loop
        self._pending: asyncio.TimerHandle | None = None

    @property
    def preview(self) -> ParsedAssessmentData | None:
        return self.outcome.data if self.outcome is not None else None

    @property
    def state(self) -> str:
        if self.outcome is not None and self._pending is None and not self.is_parsing:
            return STATE_PREVIEWING
        return STATE_COLLECTING

    @property
    def has_pending_parse(self) -> bool:
        return self._pending is not None

    @property
    def effective_type(self) -> str | None:
        detected = self.preview.assessment_type if self.preview is not None else None
        return self.selected_type or detected

    @property
    def can_import(self) -> bool:
        preview = self.preview
        if preview is None:
            return False
        return bool(preview.domains) or self.effective_type is not None

    def set_text(self, text: str) -> None:
        self.text = text
        if not text.strip():
            self._cancel_pending()
            self.outcome = None
            return
        self._schedule()

    def select_assessment(self, assessment_id: str | None) -> None:
        if assessment_id and assessment_id not in self.catalog:
            raise CatalogError(f"unknown assessment type: {assessment_id}")
        self.selected_type = assessment_id or None
        if self.text.strip():
            self._schedule()

    async def paste_from_clipboard(self, reader: ClipboardReader) -> bool:
        try:
            text = await reader()
        except Exception as exc:
            logger.warning("Clipboard read failed: %s", exc)
            return False
        self.set_text(text)
        return True

    def parse_now(self) -> ParseOutcome | None:
        self._cancel_pending()
        if not self.text.strip():
            self.outcome = None
            return None
        self.is_parsing = True
        try:
            data = parse_assessment_text(self.text, self.catalog, selected_type=self.selected_type)
        except Exception as exc:
            logger.exception("Assessment parse failed")
            self.outcome = ParseOutcome.failed(exc)
        else:
            self.outcome = ParseOutcome.from_data(data)
        finally:
            self.is_parsing = False
        return self.outcome

    def confirm(self) -> ParsedAssessmentData | None:
        """Pass the current preview to ``on_import`` and return what was sent."""

        if self._pending is not None:
            self.parse_now()
        if not self.can_import or self.preview is None:
            return None
        payload = copy.deepcopy(self.preview)
        payload.assessment_type = self.effective_type
        self.on_import(payload)
        return payload

    def reset(self) -> None:
        self._cancel_pending()
        self.text = ""
        self.outcome = None
        self.selected_type = None

    def _schedule(self) -> None:
        self._cancel_pending()
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                self.parse_now()
                return
        self._pending = loop.call_later(self.debounce_ms / 1000, self._fire)

    def _fire(self) -> None:
        self._pending = None
        self.parse_now()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
