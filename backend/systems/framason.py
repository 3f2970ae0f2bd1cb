"""共济会招募联盟

共济会首领每晚（盲夜除外）可以招募一人：
- 市民阵营或间谍（黑手党）→ 安全加入联盟。
- 其他黑手党或独立角色 → 联盟被“污染”，招募对象不加入。
  次日早上首领和已加入的成员全部出局，被招募的坏人不死。
联盟有最大人数限制（不含首领），首领死亡后不再招募。
"""

from __future__ import annotations

import logging
from typing import Optional

from models.game_models import RoleId, Team

logger = logging.getLogger(__name__)

# 间谍被视作安全招募对象
SAFE_MAFIA_ROLES = frozenset({RoleId.SPY})


class Framason:

    def __init__(self):
        self._leader_id: Optional[int] = None
        self._members: list[int] = []
        self._max_members = 2
        self._contaminated: Optional[dict] = None  # {"recruit_id": int}
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def leader_id(self) -> Optional[int]:
        return self._leader_id

    @property
    def members(self) -> list[int]:
        return list(self._members)

    @property
    def max_members(self) -> int:
        return self._max_members

    @property
    def member_count(self) -> int:
        return len(self._members)

    @property
    def is_contaminated(self) -> bool:
        return self._contaminated is not None

    @property
    def contaminated_recruit_id(self) -> Optional[int]:
        return self._contaminated["recruit_id"] if self._contaminated else None

    @property
    def can_recruit(self) -> bool:
        return (
            self._active
            and self._contaminated is None
            and len(self._members) < self._max_members
        )

    @property
    def alliance_ids(self) -> list[int]:
        if self._leader_id is None:
            return []
        return [self._leader_id, *self._members]

    def init(self, leader_id: int, max_members: int = 2) -> None:
        self._leader_id = leader_id
        self._max_members = max(1, max_members)
        self._members = []
        self._contaminated = None
        self._active = True

    def recruit(self, recruit_id: int, role_id: RoleId, team: Team) -> dict:
        """返回 {"safe": bool, "contaminated": bool}；无法招募时两者均为 False"""
        if not self.can_recruit:
            return {"safe": False, "contaminated": False}

        if team == Team.CITIZEN or role_id in SAFE_MAFIA_ROLES:
            self._members.append(recruit_id)
            return {"safe": True, "contaminated": False}

        self._contaminated = {"recruit_id": recruit_id}
        logger.info(f"共济会招募 {recruit_id} 号被污染")
        return {"safe": False, "contaminated": True}

    def resolve_contamination(self) -> list[int]:
        """次日早上结算污染，返回需要出局的首领 + 成员（不含坏人）"""
        if self._contaminated is None:
            return []
        dead_ids = [self._leader_id, *self._members] if self._leader_id is not None else list(self._members)
        self._active = False
        self._contaminated = None
        return dead_ids

    def on_leader_death(self) -> None:
        self._active = False

    def to_dict(self) -> dict:
        return {
            "leader_id": self._leader_id,
            "members": list(self._members),
            "max_members": self._max_members,
            "contaminated": dict(self._contaminated) if self._contaminated else None,
            "active": self._active,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> Framason:
        data = data or {}
        framason = cls()
        framason._leader_id = data.get("leader_id")
        framason._members = list(data.get("members") or [])
        framason._max_members = data.get("max_members", 2)
        framason._contaminated = data.get("contaminated")
        framason._active = bool(data.get("active", False))
        return framason
