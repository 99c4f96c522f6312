"""
The main entrypoint for the MindfulSpace package.

This module contains the ``MindfulSpace`` class, which wires the package's
pillars together: a key-value adapter, the entity store built on it, the
conversation log, the local profile, server-side accounts, and the chat
companion. Every pillar can be swapped through the constructor.
"""

import logging
from typing import Optional

from . import kv as kv_module
from . import llm as llm_module
from .auth import Accounts
from .cache import QueryCache, SyncClient
from .companion import Companion
from .config import Settings
from .conversations import ConversationLog
from .profile import ProfileStore
from .store import Collection, EntityStore

__all__ = ["MindfulSpace"]

logger = logging.getLogger(__name__)


class MindfulSpace:
    """
    Central orchestrator for the data and service pillars.

    All pillars share one key-value adapter, and with it the per-key locks
    that serialize writes to each collection.
    """

    def __init__(
        self,
        kv: Optional[kv_module.KeyValue] = None,
        llm: Optional[llm_module.LLM] = None,
        entities: Optional[EntityStore] = None,
        bcrypt_rounds: int = 12,
    ) -> None:
        """
        Initialize the application with configurable pillars.

        Parameters
        ----------
        kv : kv.KeyValue, optional
            Persistence adapter. Defaults to kv.InMemory().
        llm : llm.LLM, optional
            Chat completion provider. Defaults to llm.OpenAI(), falling back
            to llm.Echo() when the ``openai`` package is not installed.
        entities : store.EntityStore, optional
            Entity store, for custom collection schemas. Defaults to an
            EntityStore over ``kv`` with the built-in collections.
        bcrypt_rounds : int, default=12
            Work factor used when hashing account passwords.

        Examples
        --------
        >>> space = MindfulSpace(kv=kv.File("./data"), llm=llm.Echo())
        >>> experts = await space.entity("Expert").list("-created_date")
        """
        self.kv = kv if kv is not None else kv_module.InMemory()

        if llm is not None:
            self.llm = llm
        else:
            try:
                self.llm = llm_module.OpenAI()
            except ImportError:
                import warnings

                warnings.warn(
                    "MindfulSpace is running with a simple Echo LLM because the 'openai' package is not installed. "
                    'For the OpenAI integration, install with: pip install "mindfulspace[openai]"',
                    UserWarning,
                )
                self.llm = llm_module.Echo()

        self.entities = entities if entities is not None else EntityStore(self.kv)
        self.conversations = ConversationLog(self.kv)
        self.profile = ProfileStore(self.kv)
        self.accounts = Accounts(self.kv, bcrypt_rounds=bcrypt_rounds)
        self.companion = Companion(self.llm, self.conversations)
        self.sync = SyncClient(self.entities, QueryCache())

    def entity(self, name: str) -> Collection:
        """Returns the CRUD handle for collection ``name``."""
        return self.entities.collection(name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "MindfulSpace":
        """Builds the pillars described by ``settings``."""
        backends = {
            "memory": lambda: kv_module.InMemory(timeout=settings.storage_timeout),
            "file": lambda: kv_module.File(
                settings.storage_path, timeout=settings.storage_timeout
            ),
            "json": lambda: kv_module.JSONFile(
                settings.storage_path, timeout=settings.storage_timeout
            ),
            "sqlite": lambda: kv_module.SQLite(
                settings.storage_path, timeout=settings.storage_timeout
            ),
        }
        store = backends[settings.storage_backend]()

        llm_kwargs = {}
        if settings.llm_model:
            llm_kwargs["default_model"] = settings.llm_model
        if settings.llm_provider == "openai":
            provider = llm_module.OpenAI(
                api_key=settings.llm_api_key, timeout=settings.llm_timeout, **llm_kwargs
            )
        elif settings.llm_provider == "anthropic":
            provider = llm_module.Anthropic(
                api_key=settings.llm_api_key, timeout=settings.llm_timeout, **llm_kwargs
            )
        else:
            provider = llm_module.Echo(**llm_kwargs)

        logger.info(
            "Using %s storage at %s with %s provider",
            settings.storage_backend,
            settings.storage_path,
            settings.llm_provider,
        )
        return cls(kv=store, llm=provider, bcrypt_rounds=settings.bcrypt_rounds)
