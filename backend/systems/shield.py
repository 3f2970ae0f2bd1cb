"""一次性护盾

教父、狙击手等角色开局带一面护盾：被击杀时护盾吸收伤害，玩家存活，护盾随即失效。
以下死因无视护盾：投票处决、屠宰、炸弹、实弹过期爆炸、狙击手误伤自己。
"""

from __future__ import annotations

from models.game_models import DeathCause

BYPASS_CAUSES = frozenset({
    DeathCause.VOTE,
    DeathCause.SALAKHI,
    DeathCause.BOMB,
    DeathCause.LIVE_EXPLOSION,
    DeathCause.SNIPER_MISS,
})


class Shield:

    def __init__(self, active: bool = False, activated: bool | None = None):
        self._active = active
        # 是否已经激活过（护盾失效后不会再次激活）
        self._activated = active if activated is None else activated

    @property
    def is_active(self) -> bool:
        return self._active

    def activate(self) -> None:
        """分配角色时调用（仅对 has_shield 的角色）；只有第一次调用生效"""
        if self._activated:
            return
        self._activated = True
        self._active = True

    def absorb(self, cause: DeathCause) -> bool:
        """尝试吸收一次致命伤害，成功返回 True 并消耗护盾"""
        if cause in BYPASS_CAUSES:
            return False
        if not self._active:
            return False
        self._active = False
        return True

    def to_dict(self) -> dict:
        return {"active": self._active, "activated": self._activated}

    @classmethod
    def from_dict(cls, data: dict | None) -> Shield:
        data = data or {}
        activated = data.get("activated")
        return cls(bool(data.get("active", False)), None if activated is None else bool(activated))
