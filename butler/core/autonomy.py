"""Autonomy policy: which AI actions may run without staff sign-off.

Each action type has a level. ``L1`` means every action is queued for
approval; ``L2`` means the action executes automatically. Settings are loaded
once from an :class:`AutonomySettingsStore` and cached; the cache only changes
through :meth:`AutonomyEngine.save_settings` or :meth:`AutonomyEngine.reload`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal, Optional, Protocol

import psycopg
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

AutonomyLevel = Literal["L1", "L2"]
ConfidenceDecision = Literal["auto", "approval_required"]

ACTION_TYPES: tuple[str, ...] = (
    "respondToGuest",
    "createHousekeepingTask",
    "createMaintenanceTask",
    "createConciergeTask",
    "createRoomServiceTask",
    "issueRefund",
    "offerDiscount",
    "sendMarketingMessage",
)

FINANCIAL_ACTIONS = frozenset({"issueRefund", "offerDiscount"})

_TASK_ACTION_TYPES = {
    "housekeeping": "createHousekeepingTask",
    "maintenance": "createMaintenanceTask",
    "concierge": "createConciergeTask",
    "room_service": "createRoomServiceTask",
}

_LEVEL_DESCRIPTIONS = {
    "L1": "Approval Required - staff must approve every action before it runs",
    "L2": "Auto-Execute - the assistant acts on its own and staff are notified",
}


class ActionConfig(BaseModel):
    level: AutonomyLevel
    max_auto_amount: float = Field(default=0, ge=0)
    max_auto_percent: float = Field(default=0, ge=0, le=100)
    requires_room: bool = False


class ConfidenceThresholds(BaseModel):
    approval: float = Field(default=0.7, ge=0, le=1)
    urgent: float = Field(default=0.5, ge=0, le=1)


class VipOverrides(BaseModel):
    always_escalate_complaints: bool = True
    require_approval_for_offers: bool = True
    elevate_task_priority: bool = True


def _default_actions() -> dict[str, ActionConfig]:
    actions = {action: ActionConfig(level="L2") for action in ACTION_TYPES}
    for action in ("issueRefund", "offerDiscount", "sendMarketingMessage"):
        actions[action] = ActionConfig(level="L1")
    return actions


class AutonomySettings(BaseModel):
    default_level: AutonomyLevel = "L2"
    actions: dict[str, ActionConfig] = Field(default_factory=_default_actions)
    confidence_thresholds: ConfidenceThresholds = Field(default_factory=ConfidenceThresholds)
    vip_overrides: VipOverrides = Field(default_factory=VipOverrides)


DEFAULT_AUTONOMY_SETTINGS = AutonomySettings()


@dataclass
class AutonomyContext:
    guest_id: str | None = None
    is_vip: bool = False
    has_complaint: bool = False
    loyalty_tier: str | None = None
    room_number: str | None = None


def map_task_type_to_action_type(task_type: str) -> Optional[str]:
    return _TASK_ACTION_TYPES.get(task_type)


def get_level_description(level: str) -> str:
    return _LEVEL_DESCRIPTIONS.get(level, f"Unknown level {level}")


# ---------------------------------------------------------------------------
# Settings storage


class AutonomySettingsStore(Protocol):
    async def load(self) -> Optional[AutonomySettings]: ...

    async def save(self, settings: AutonomySettings) -> None: ...


class InMemoryAutonomySettingsStore:
    def __init__(self, settings: AutonomySettings | None = None) -> None:
        self._settings = settings.model_copy(deep=True) if settings else None
        self.load_count = 0

    async def load(self) -> Optional[AutonomySettings]:
        self.load_count += 1
        return self._settings.model_copy(deep=True) if self._settings else None

    async def save(self, settings: AutonomySettings) -> None:
        self._settings = settings.model_copy(deep=True)


class PostgresAutonomySettingsStore:
    """Single-row JSONB document in ``autonomy_settings``."""

    def __init__(self, conn: psycopg.AsyncConnection) -> None:
        self._conn = conn

    async def load(self) -> Optional[AutonomySettings]:
        async with self._conn.cursor(row_factory=dict_row) as cur:
            await cur.execute("SELECT settings FROM autonomy_settings WHERE id = 1")
            row = await cur.fetchone()
        if not row:
            return None
        return AutonomySettings.model_validate(row["settings"])

    async def save(self, settings: AutonomySettings) -> None:
        async with self._conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO autonomy_settings (id, settings, updated_at)
                VALUES (1, %s, now())
                ON CONFLICT (id) DO UPDATE SET settings = EXCLUDED.settings, updated_at = now()
                """,
                (Jsonb(settings.model_dump(mode="json")),),
            )


# ---------------------------------------------------------------------------
# Engine


class AutonomyEngine:
    def __init__(self, store: AutonomySettingsStore | None = None) -> None:
        self._store = store or InMemoryAutonomySettingsStore()
        self._settings = DEFAULT_AUTONOMY_SETTINGS.model_copy(deep=True)
        self._loaded = False
        self._load_lock = asyncio.Lock()

    @property
    def settings(self) -> AutonomySettings:
        """Return a copy of the cached settings; edit it and pass it to ``save_settings``."""

        return self._settings.model_copy(deep=True)

    @property
    def loaded(self) -> bool:
        return self._loaded

    async def ensure_loaded(self) -> None:
        if self._loaded:
            return
        async with self._load_lock:
            if not self._loaded:
                await self._load()

    async def reload(self) -> AutonomySettings:
        async with self._load_lock:
            await self._load()
        return self.settings

    async def _load(self) -> None:
        stored = await self._store.load()
        self._settings = stored or DEFAULT_AUTONOMY_SETTINGS.model_copy(deep=True)
        self._loaded = True
        logger.info(
            "Autonomy settings loaded",
            extra={"default_level": self._settings.default_level, "from_store": stored is not None},
        )

    async def save_settings(self, settings: AutonomySettings) -> AutonomySettings:
        await self._store.save(settings)
        self._settings = settings.model_copy(deep=True)
        self._loaded = True
        logger.info("Autonomy settings saved", extra={"default_level": settings.default_level})
        return self.settings

    # ------------------------------------------------------------------
    # Policy checks

    def get_action_config(self, action_type: str) -> ActionConfig:
        config = self._settings.actions.get(action_type)
        if config is None:
            return ActionConfig(level=self._settings.default_level)
        return config

    def get_effective_level(
        self, action_type: str, context: AutonomyContext | None = None
    ) -> AutonomyLevel:
        config = self.get_action_config(action_type)
        level = config.level
        if context is None:
            return level
        overrides = self._settings.vip_overrides
        if context.is_vip:
            if (
                action_type == "respondToGuest"
                and context.has_complaint
                and overrides.always_escalate_complaints
            ):
                return "L1"
            if action_type in FINANCIAL_ACTIONS and overrides.require_approval_for_offers:
                return "L1"
        if config.requires_room and not context.room_number:
            return "L1"
        return level

    def can_auto_execute(self, action_type: str, context: AutonomyContext | None = None) -> bool:
        return self.get_effective_level(action_type, context) == "L2"

    def should_auto_execute_by_confidence(self, confidence: float) -> ConfidenceDecision:
        if confidence >= self._settings.confidence_thresholds.approval:
            return "auto"
        return "approval_required"

    def is_urgent_confidence(self, confidence: float) -> bool:
        return confidence < self._settings.confidence_thresholds.urgent

    def can_auto_approve_amount(self, action_type: str, amount: float) -> bool:
        limit = self.get_action_config(action_type).max_auto_amount
        return limit > 0 and amount <= limit

    def can_auto_approve_percent(self, action_type: str, percent: float) -> bool:
        limit = self.get_action_config(action_type).max_auto_percent
        return limit > 0 and percent <= limit
