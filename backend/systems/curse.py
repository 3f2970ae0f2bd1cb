"""杰克的诅咒（命运绑定）

杰克每晚把诅咒放在一名存活玩家身上：目标当晚被杀或白天被处决，杰克随之出局。
诅咒在每晚开始时清空，杰克必须重新选择。锁定后不能再移动诅咒（杰克身份公开时）。
"""

from __future__ import annotations

from typing import Optional


class Curse:

    def __init__(self):
        self._target_id: Optional[int] = None
        self._last_target_id: Optional[int] = None
        self._locked = False

    @property
    def is_active(self) -> bool:
        return self._target_id is not None

    @property
    def target_id(self) -> Optional[int]:
        return self._target_id

    @property
    def last_target_id(self) -> Optional[int]:
        return self._last_target_id

    @property
    def is_locked(self) -> bool:
        return self._locked

    def place(self, player_id: int) -> bool:
        if self._locked:
            return False
        self._target_id = player_id
        return True

    def lock(self) -> None:
        self._locked = True

    def clear(self) -> None:
        """每晚开始时调用，保留上一晚目标供界面提示"""
        if self._target_id is not None:
            self._last_target_id = self._target_id
        self._target_id = None

    def is_triggered_by(self, killed_player_id: int) -> bool:
        return self._target_id is not None and self._target_id == killed_player_id

    def to_dict(self) -> dict:
        return {
            "target_id": self._target_id,
            "last_target_id": self._last_target_id,
            "locked": self._locked,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> Curse:
        data = data or {}
        curse = cls()
        curse._target_id = data.get("target_id")
        curse._last_target_id = data.get("last_target_id")
        curse._locked = bool(data.get("locked", False))
        return curse
