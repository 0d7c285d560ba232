from __future__ import annotations

from dataclasses import dataclass

from formcraft.auth import AuthProvider, get_auth_provider
from formcraft.config import Settings
from formcraft.protocols import Storage
from formcraft.services import DraftAutosaver, DraftService, FormService, ResponseService
from formcraft.storage import init_storage


@dataclass
class AppContext:
    """Everything a request handler needs, created once per application."""

    settings: Settings
    storage: Storage
    auth: AuthProvider
    forms: FormService
    responses: ResponseService
    drafts: DraftService
    autosaver: DraftAutosaver

    @classmethod
    def create(cls, settings: Settings, storage: Storage | None = None) -> AppContext:
        storage = storage or init_storage(settings)
        drafts = DraftService(storage)
        return cls(
            settings=settings,
            storage=storage,
            auth=get_auth_provider(settings),
            forms=FormService(storage),
            responses=ResponseService(storage),
            drafts=drafts,
            autosaver=DraftAutosaver(drafts, settings.draft_throttle_ms),
        )

    def close(self) -> None:
        self.autosaver.flush_all()
        self.storage.close()
