"""存档快照解析（兼容旧版本字段名）

读档时先用这些 pydantic 模型校验并把旧字段名归一化，
再 model_dump() 交给各实体的 from_dict 还原。
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator, model_validator


# 旧版本的角色 ID
_LEGACY_ROLE_IDS = {"sorcerer": "jadoogar"}

_LEGACY_BOMB_PHASES = {
    None: "none",
    "siesta": "determination",
    "exploded": "detonated",
    "guardian_died": "protector_died",
}

_LEGACY_BULLET_TYPES = {"mashghi": "blank", "jangi": "live"}

_LEGACY_DEATH_CAUSES = {"bodyguard_sacrifice": "mafia", "jack": "telesm"}

_KNOWN_DEATH_CAUSES = {
    "mafia", "salakhi", "zodiac", "zodiac_bodyguard", "sniper", "sniper_miss", "telesm",
    "vote", "bomb", "guardian_bomb", "gunner", "live_explosion", "framason", "kane", "moderator",
}


def _role_id(value: Any) -> Any:
    if isinstance(value, str):
        return _LEGACY_ROLE_IDS.get(value, value)
    return value


class ShieldSnapshot(BaseModel):
    active: bool = False
    activated: Optional[bool] = None  # 旧存档没有此字段，按 active 推断


class CurseSnapshot(BaseModel):
    target_id: Optional[int] = Field(None, validation_alias=AliasChoices("target_id", "targetId"))
    last_target_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("last_target_id", "lastTargetId")
    )
    locked: bool = False


class PlayerSnapshot(BaseModel):
    id: int = Field(validation_alias=AliasChoices("id", "player_id"))
    name: str
    role_id: Optional[str] = Field(None, validation_alias=AliasChoices("role_id", "roleId"))
    is_alive: bool = Field(True, validation_alias=AliasChoices("is_alive", "isAlive"))
    death_round: Optional[int] = Field(None, validation_alias=AliasChoices("death_round", "deathRound"))
    death_cause: Optional[str] = Field(None, validation_alias=AliasChoices("death_cause", "deathCause"))
    silenced: bool = False
    healed: bool = False
    shield: ShieldSnapshot = Field(default_factory=ShieldSnapshot)
    curse: CurseSnapshot = Field(
        default_factory=CurseSnapshot, validation_alias=AliasChoices("curse", "telesm")
    )
    notes: list[dict] = Field(default_factory=list)

    @field_validator("role_id", mode="before")
    @classmethod
    def _legacy_role(cls, v):
        return _role_id(v)

    @field_validator("death_cause", mode="before")
    @classmethod
    def _legacy_cause(cls, v):
        if v is None:
            return None
        v = _LEGACY_DEATH_CAUSES.get(v, v)
        return v if v in _KNOWN_DEATH_CAUSES else None


class BombSnapshot(BaseModel):
    target_id: Optional[int] = Field(None, validation_alias=AliasChoices("target_id", "targetId"))
    password: Optional[int] = None
    used: bool = False
    phase: str = "none"
    guardian_skipped: bool = Field(
        False, validation_alias=AliasChoices("guardian_skipped", "guardianSkipped")
    )

    @field_validator("phase", mode="before")
    @classmethod
    def _legacy_phase(cls, v):
        return _LEGACY_BOMB_PHASES.get(v, v)


class FramasonSnapshot(BaseModel):
    leader_id: Optional[int] = Field(None, validation_alias=AliasChoices("leader_id", "leaderId"))
    members: list[int] = Field(default_factory=list)
    max_members: int = Field(2, validation_alias=AliasChoices("max_members", "maxMembers"))
    contaminated: Optional[dict] = None
    active: bool = False

    @field_validator("contaminated", mode="before")
    @classmethod
    def _legacy_contaminated(cls, v):
        if isinstance(v, dict) and "recruitId" in v:
            return {"recruit_id": v["recruitId"]}
        return v


class ActiveBulletSnapshot(BaseModel):
    holder_id: int = Field(validation_alias=AliasChoices("holder_id", "holderId"))
    type: str
    given_round: int = Field(0, validation_alias=AliasChoices("given_round", "givenRound"))

    @field_validator("type", mode="before")
    @classmethod
    def _legacy_type(cls, v):
        return _LEGACY_BULLET_TYPES.get(v, v)


class BulletSnapshot(BaseModel):
    blank_max: int = Field(2, validation_alias=AliasChoices("blank_max", "blankMax", "mashghiMax"))
    live_max: int = Field(2, validation_alias=AliasChoices("live_max", "liveMax", "jangiMax"))
    blank_remaining: Optional[int] = Field(
        None, validation_alias=AliasChoices("blank_remaining", "blankRemaining", "mashghiRemaining")
    )
    live_remaining: Optional[int] = Field(
        None, validation_alias=AliasChoices("live_remaining", "liveRemaining", "jangiRemaining")
    )
    active_bullets: list[ActiveBulletSnapshot] = Field(
        default_factory=list, validation_alias=AliasChoices("active_bullets", "activeBullets")
    )
    active: bool = False

    @model_validator(mode="after")
    def _fill_remaining(self):
        if self.blank_remaining is None:
            self.blank_remaining = self.blank_max
        if self.live_remaining is None:
            self.live_remaining = self.live_max
        return self


class ConfigSnapshot(BaseModel):
    min_players: int = Field(4, validation_alias=AliasChoices("min_players", "minPlayers"))
    blank_bullets: int = Field(2, validation_alias=AliasChoices("blank_bullets", "blankBullets"))
    live_bullets: int = Field(2, validation_alias=AliasChoices("live_bullets", "liveBullets"))
    framason_max_members: int = Field(
        2, validation_alias=AliasChoices("framason_max_members", "framasonMaxMembers")
    )
    negotiation_threshold: int = Field(
        2, validation_alias=AliasChoices("negotiation_threshold", "negotiationThreshold")
    )
    sniper_max_shots: int = Field(2, validation_alias=AliasChoices("sniper_max_shots", "sniperMaxShots"))
    zodiac_frequency: str = Field(
        "every", validation_alias=AliasChoices("zodiac_frequency", "zodiacFrequency")
    )
    watson_self_heal_limit: int = Field(
        1, validation_alias=AliasChoices("watson_self_heal_limit", "watsonSelfHealLimit")
    )
    lecter_self_heal_limit: int = Field(
        1, validation_alias=AliasChoices("lecter_self_heal_limit", "lecterSelfHealLimit")
    )
    day_timer_duration: int = Field(
        180, validation_alias=AliasChoices("day_timer_duration", "dayTimerDuration")
    )
    defense_timer_duration: int = Field(
        60, validation_alias=AliasChoices("defense_timer_duration", "defenseTimerDuration")
    )
    blind_day_duration: int = Field(
        60, validation_alias=AliasChoices("blind_day_duration", "blindDayDuration")
    )


class HistorySnapshot(BaseModel):
    round: int = 0
    phase: str = "setup"
    type: str
    text: str
    timestamp: int = 0


class NightStepSnapshot(BaseModel):
    role_id: str = Field(validation_alias=AliasChoices("role_id", "roleId"))
    action_type: str = Field(validation_alias=AliasChoices("action_type", "actionType"))
    actors: list[int] = Field(default_factory=list)
    target_id: Optional[int] = Field(None, validation_alias=AliasChoices("target_id", "targetId"))
    completed: bool = False

    @field_validator("role_id", mode="before")
    @classmethod
    def _legacy_role(cls, v):
        return _role_id(v)


class NightActionSnapshot(BaseModel):
    actor_ids: list[int] = Field(default_factory=list, validation_alias=AliasChoices("actor_ids", "actorIds"))
    action_type: str = Field(validation_alias=AliasChoices("action_type", "actionType"))
    target_id: Optional[int] = Field(None, validation_alias=AliasChoices("target_id", "targetId"))
    mode: Optional[str] = None
    guessed_role_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("guessed_role_id", "guessedRoleId")
    )
    password: Optional[int] = None
    assignments: list[dict] = Field(default_factory=list)

    @field_validator("assignments", mode="before")
    @classmethod
    def _legacy_assignments(cls, v):
        return [
            {
                "holder_id": a.get("holder_id", a.get("holderId")),
                "type": _LEGACY_BULLET_TYPES.get(a.get("type"), a.get("type")),
            }
            for a in v or []
        ]


# 旧版本把这些规则参数放在顶层
_LEGACY_TOP_LEVEL_CONFIG = (
    "zodiacFrequency", "dayTimerDuration", "defenseTimerDuration", "blindDayDuration",
)


class GameSnapshot(BaseModel):
    game_id: str = Field("", validation_alias=AliasChoices("game_id", "gameId"))
    round: int = 0
    phase: str = "setup"
    winner: Optional[str] = None
    players: list[PlayerSnapshot] = Field(default_factory=list)
    history: list[HistorySnapshot] = Field(default_factory=list)
    selected_roles: dict[str, int] = Field(
        default_factory=dict, validation_alias=AliasChoices("selected_roles", "selectedRoles")
    )
    night_steps: list[NightStepSnapshot] = Field(
        default_factory=list, validation_alias=AliasChoices("night_steps", "nightSteps")
    )
    current_night_step: int = Field(
        0, validation_alias=AliasChoices("current_night_step", "currentNightStep")
    )
    night_actions: dict[str, NightActionSnapshot] = Field(
        default_factory=dict, validation_alias=AliasChoices("night_actions", "nightActions")
    )
    night_resolved: bool = Field(
        False, validation_alias=AliasChoices("night_resolved", "nightResolved")
    )
    votes: dict[int, int] = Field(default_factory=dict)
    next_player_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("next_player_id", "nextPlayerId")
    )
    constantine_used: bool = Field(
        False, validation_alias=AliasChoices("constantine_used", "constantineUsed")
    )
    kane_used: bool = Field(False, validation_alias=AliasChoices("kane_used", "kaneUsed"))
    kane_pending_death: Optional[int] = Field(
        None, validation_alias=AliasChoices("kane_pending_death", "kanePendingDeath")
    )
    sniper_shots_used: int = Field(
        0, validation_alias=AliasChoices("sniper_shots_used", "sniperShotsUsed")
    )
    watson_self_heals: int = Field(
        0, validation_alias=AliasChoices("watson_self_heals", "watsonSelfHeals")
    )
    lecter_self_heals: int = Field(
        0, validation_alias=AliasChoices("lecter_self_heals", "lecterSelfHeals")
    )
    last_watson_target: Optional[int] = Field(
        None, validation_alias=AliasChoices("last_watson_target", "_lastDrWatsonTarget")
    )
    last_lecter_target: Optional[int] = Field(
        None, validation_alias=AliasChoices("last_lecter_target", "_lastDrLecterTarget")
    )
    last_blocked_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("last_blocked_id", "_lastJadoogarTarget")
    )
    bomb: BombSnapshot = Field(default_factory=BombSnapshot)
    framason: FramasonSnapshot = Field(default_factory=FramasonSnapshot)
    bullet_manager: BulletSnapshot = Field(
        default_factory=BulletSnapshot,
        validation_alias=AliasChoices("bullet_manager", "bulletManager", "tofangdar"),
    )
    config: ConfigSnapshot = Field(default_factory=ConfigSnapshot)

    @model_validator(mode="before")
    @classmethod
    def _legacy_layout(cls, data):
        if not isinstance(data, dict) or "config" in data:
            return data
        legacy = {k: data[k] for k in _LEGACY_TOP_LEVEL_CONFIG if k in data}
        if legacy:
            data = {**data, "config": legacy}
        return data

    @field_validator("selected_roles", "night_actions", mode="before")
    @classmethod
    def _legacy_role_keys(cls, v):
        if isinstance(v, dict):
            return {_role_id(k): val for k, val in v.items()}
        return v

    @field_validator("votes", mode="before")
    @classmethod
    def _drop_empty_votes(cls, v):
        if isinstance(v, dict):
            return {k: val for k, val in v.items() if val is not None}
        return v
