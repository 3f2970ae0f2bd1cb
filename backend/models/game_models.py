"""游戏相关数据模型（纯数据类）"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


class Team(str, Enum):
    MAFIA = "mafia"
    CITIZEN = "citizen"
    INDEPENDENT = "independent"


class NightActionType(str, Enum):
    KILL = "kill"                            # 教父：开枪 / 屠宰 / 谈判
    MAFIA_HEAL = "mafiaHeal"                 # 莱克特医生救黑手党
    BOMB = "bomb"                            # 炸弹客安放炸弹
    SILENCE = "silence"                      # 斗牛士禁言
    BLOCK = "block"                          # 巫师封锁能力
    CURSE = "curse"                          # 杰克的诅咒
    SOLO_KILL = "soloKill"                   # 十二宫独立击杀
    HEAL = "heal"                            # 华生医生救人
    INVESTIGATE = "investigate"              # 侦探查验
    KANE_REVEAL = "kaneReveal"               # 凯恩公开身份
    REVIVE = "revive"                        # 康斯坦丁复活
    GIVE_BULLET = "giveBullet"               # 枪手发子弹
    FRAMASON_RECRUIT = "framasonRecruit"     # 共济会招募
    CHECK_NEGOTIATION = "checkNegotiation"   # 记者查看谈判结果
    SNIPE = "snipe"                          # 狙击手
    MAFIA_REVEAL = "mafiaReveal"             # 盲夜黑手党互认


class RoleId(str, Enum):
    # 黑手党
    GODFATHER = "godfather"
    DR_LECTER = "drLecter"
    JADOOGAR = "jadoogar"
    MATADOR = "matador"
    BOMBER = "bomber"
    SPY = "spy"
    SIMPLE_MAFIA = "simpleMafia"
    # 独立
    JACK = "jack"
    ZODIAC = "zodiac"
    # 市民
    DR_WATSON = "drWatson"
    DETECTIVE = "detective"
    KANE = "kane"
    CONSTANTINE = "constantine"
    GUNNER = "gunner"
    FREEMASON = "freemason"
    BODYGUARD = "bodyguard"
    SNIPER = "sniper"
    REPORTER = "reporter"
    SUSPECT = "suspect"
    SIMPLE_CITIZEN = "simpleCitizen"


class GamePhase(str, Enum):
    SETUP = "setup"
    ROLE_REVEAL = "roleReveal"
    BLIND_DAY = "blindDay"
    BLIND_NIGHT = "blindNight"
    NIGHT = "night"
    DAY = "day"
    ENDED = "ended"


class DeathCause(str, Enum):
    MAFIA = "mafia"
    SALAKHI = "salakhi"
    ZODIAC = "zodiac"
    ZODIAC_BODYGUARD = "zodiac_bodyguard"
    SNIPER = "sniper"
    SNIPER_MISS = "sniper_miss"
    CURSE = "telesm"
    VOTE = "vote"
    BOMB = "bomb"
    GUARDIAN_BOMB = "guardian_bomb"
    LIVE_BULLET = "gunner"
    LIVE_EXPLOSION = "live_explosion"
    FRAMASON = "framason"
    KANE = "kane"
    MODERATOR = "moderator"


# 复活（康斯坦丁）无效的死因
NON_REVIVABLE_CAUSES = frozenset({DeathCause.SALAKHI, DeathCause.MODERATOR})


class GodfatherMode(str, Enum):
    SHOOT = "shoot"
    SALAKHI = "salakhi"
    NEGOTIATE = "negotiate"


class BulletType(str, Enum):
    BLANK = "blank"
    LIVE = "live"


class BombPhase(str, Enum):
    NONE = "none"
    PLANTED = "planted"
    DETERMINATION = "determination"
    DEFUSED = "defused"
    DETONATED = "detonated"
    PROTECTOR_DIED = "protector_died"


class InvestigationResult(str, Enum):
    BLOCKED = "blocked"
    POSITIVE = "positive"
    NEGATIVE = "negative"


class ZodiacFrequency(str, Enum):
    EVERY = "every"
    ODD = "odd"
    EVEN = "even"


@dataclass(frozen=True)
class RoleDefinition:
    """角色定义（不可变，进程启动时加载一次）"""
    id: RoleId
    name: str
    team: Team
    night_action: Optional[NightActionType] = None
    priority: int = 999
    max_count: int = 1
    unique: bool = True
    has_shield: bool = False
    shoot_immune: bool = False
    vote_immune: bool = False
    morning_shot_immune: bool = False

    @property
    def has_night_action(self) -> bool:
        return self.night_action is not None


@dataclass
class GameConfig:
    """单局规则参数（创建时从 Settings 拷贝，随存档保存）"""
    min_players: int = 4
    blank_bullets: int = 2
    live_bullets: int = 2
    framason_max_members: int = 2
    negotiation_threshold: int = 2
    sniper_max_shots: int = 2
    zodiac_frequency: ZodiacFrequency = ZodiacFrequency.EVERY
    watson_self_heal_limit: int = 1
    lecter_self_heal_limit: int = 1
    day_timer_duration: int = 180
    defense_timer_duration: int = 60
    blind_day_duration: int = 60

    @classmethod
    def from_settings(cls, settings) -> GameConfig:
        return cls(
            min_players=settings.min_players,
            blank_bullets=settings.blank_bullets,
            live_bullets=settings.live_bullets,
            framason_max_members=settings.framason_max_members,
            negotiation_threshold=settings.negotiation_threshold,
            sniper_max_shots=settings.sniper_max_shots,
            zodiac_frequency=ZodiacFrequency(settings.zodiac_frequency),
            watson_self_heal_limit=settings.watson_self_heal_limit,
            lecter_self_heal_limit=settings.lecter_self_heal_limit,
            day_timer_duration=settings.day_timer_duration,
            defense_timer_duration=settings.defense_timer_duration,
            blind_day_duration=settings.blind_day_duration,
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["zodiac_frequency"] = self.zodiac_frequency.value
        return data


@dataclass
class HistoryEntry:
    round: int
    phase: GamePhase
    type: str
    text: str
    timestamp: int

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "phase": self.phase.value,
            "type": self.type,
            "text": self.text,
            "timestamp": self.timestamp,
        }


@dataclass
class NightStep:
    """主持人需要依次收集的夜晚步骤"""
    role_id: str  # RoleId 的值，或盲夜的 "mafiaReveal"
    action_type: NightActionType
    actors: list[int] = field(default_factory=list)
    target_id: Optional[int] = None
    completed: bool = False

    def to_dict(self) -> dict:
        return {
            "role_id": self.role_id,
            "action_type": self.action_type.value,
            "actors": list(self.actors),
            "target_id": self.target_id,
            "completed": self.completed,
        }


@dataclass
class BulletAssignment:
    holder_id: int
    type: BulletType


@dataclass
class NightActionRecord:
    """某角色当晚记录下的行动"""
    actor_ids: list[int]
    action_type: NightActionType
    target_id: Optional[int] = None
    mode: Optional[GodfatherMode] = None
    guessed_role_id: Optional[RoleId] = None
    password: Optional[int] = None
    assignments: list[BulletAssignment] = field(default_factory=list)

    @classmethod
    def from_extra(
        cls,
        actor_ids: list[int],
        action_type: NightActionType,
        target_id: Optional[int],
        extra: Optional[dict] = None,
    ) -> NightActionRecord:
        """由主持人提交的附加数据构造（mode / guessed_role_id / password / assignments）"""
        extra = extra or {}
        mode = extra.get("mode")
        guessed = extra.get("guessed_role_id")
        assignments = [
            BulletAssignment(holder_id=int(a["holder_id"]), type=BulletType(a["type"]))
            for a in extra.get("assignments", [])
        ]
        return cls(
            actor_ids=list(actor_ids),
            action_type=action_type,
            target_id=target_id,
            mode=GodfatherMode(mode) if mode else None,
            guessed_role_id=RoleId(guessed) if guessed else None,
            password=extra.get("password"),
            assignments=assignments,
        )

    @property
    def is_skip(self) -> bool:
        return self.target_id is None and not self.assignments

    def to_dict(self) -> dict:
        return {
            "actor_ids": list(self.actor_ids),
            "action_type": self.action_type.value,
            "target_id": self.target_id,
            "mode": self.mode.value if self.mode else None,
            "guessed_role_id": self.guessed_role_id.value if self.guessed_role_id else None,
            "password": self.password,
            "assignments": [
                {"holder_id": a.holder_id, "type": a.type.value} for a in self.assignments
            ],
        }


@dataclass
class NightResult:
    """夜晚结算结果（供界面层渲染）"""
    killed: list[int] = field(default_factory=list)
    saved: list[int] = field(default_factory=list)
    shielded: list[int] = field(default_factory=list)
    blocked: Optional[int] = None
    investigated: Optional[dict] = None       # {player_id, result}
    silenced: Optional[int] = None
    bombed: Optional[int] = None
    revived: Optional[int] = None
    salakhied: Optional[dict] = None          # {player_id, correct}
    negotiation: Optional[dict] = None        # {player_id, success}
    immune: Optional[int] = None
    sniper_shot: Optional[dict] = None        # {player_id, outcome}
    framason_recruit: Optional[dict] = None   # {player_id, safe, contaminated}
    bullets_given: list[dict] = field(default_factory=list)
    bullets_returned: list[dict] = field(default_factory=list)
    kane_reveal: Optional[dict] = None        # {player_id, role_id}
    kane_returned: bool = False
    kane_died: Optional[int] = None
    jack_curse_triggered: bool = False
    framason_leader_died: bool = False

    def to_dict(self) -> dict:
        return asdict(self)
