"""玩家实体"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from models.game_models import DeathCause, RoleId
from systems.curse import Curse
from systems.shield import Shield


@dataclass
class Player:
    """单个玩家的数据（护盾与诅咒在构造时即分配，与角色无关）"""
    player_id: int
    name: str
    role_id: Optional[RoleId] = None
    is_alive: bool = True
    # 死亡信息：仅在 is_alive=False 时有值
    death_round: Optional[int] = None
    death_cause: Optional[DeathCause] = None
    # 每晚重置的标记
    silenced: bool = False
    healed: bool = False
    shield: Shield = field(default_factory=Shield)
    curse: Curse = field(default_factory=Curse)
    notes: list[dict] = field(default_factory=list)  # 主持人私人笔记

    def kill(self, round_: int, cause: DeathCause) -> None:
        """已死亡的玩家保留第一次的死亡信息"""
        if not self.is_alive:
            return
        self.is_alive = False
        self.death_round = round_
        self.death_cause = cause

    def try_kill(self, round_: int, cause: DeathCause) -> bool:
        """先检查护盾，护盾吸收返回 False（存活），否则死亡返回 True"""
        if not self.is_alive:
            return False
        if self.shield.absorb(cause):
            return False
        self.kill(round_, cause)
        return True

    def revive(self) -> None:
        self.is_alive = True
        self.death_round = None
        self.death_cause = None

    def reset_night_flags(self) -> None:
        self.silenced = False
        self.healed = False

    def add_note(self, text: str) -> None:
        self.notes.append({"text": text, "timestamp": int(time.time() * 1000)})

    def to_dict(self) -> dict:
        return {
            "id": self.player_id,
            "name": self.name,
            "role_id": self.role_id.value if self.role_id else None,
            "is_alive": self.is_alive,
            "death_round": self.death_round,
            "death_cause": self.death_cause.value if self.death_cause else None,
            "silenced": self.silenced,
            "healed": self.healed,
            "shield": self.shield.to_dict(),
            "curse": self.curse.to_dict(),
            "notes": list(self.notes),
        }

    @classmethod
    def from_dict(cls, data: dict) -> Player:
        return cls(
            player_id=data["id"],
            name=data["name"],
            role_id=RoleId(data["role_id"]) if data.get("role_id") else None,
            is_alive=data.get("is_alive", True),
            death_round=data.get("death_round"),
            death_cause=DeathCause(data["death_cause"]) if data.get("death_cause") else None,
            silenced=data.get("silenced", False),
            healed=data.get("healed", False),
            shield=Shield.from_dict(data.get("shield")),
            curse=Curse.from_dict(data.get("curse")),
            notes=list(data.get("notes") or []),
        )
