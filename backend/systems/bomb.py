"""炸弹客的炸弹（一次性）

流程：
1. 夜晚炸弹客把炸弹放在某人面前，并设定 1~4 的密码。
2. 白天讨论结束、投票之前进入“午睡判定”：
   - 保镖存活时可先猜：猜对拆除；猜错保镖代替目标死亡。保镖也可以放弃。
   - 保镖放弃或已死亡，由被炸目标自己猜：猜对拆除，猜错目标死亡。
3. 判定结束后炸弹状态清空，但“已使用”标记永久保留。
"""

from __future__ import annotations

import logging
from typing import Optional

from models.game_models import BombPhase

logger = logging.getLogger(__name__)

VALID_PASSWORDS = (1, 2, 3, 4)


class Bomb:

    def __init__(self):
        self._target_id: Optional[int] = None
        self._password: Optional[int] = None
        self._used = False
        self._phase = BombPhase.NONE
        self._guardian_skipped = False

    @property
    def is_used(self) -> bool:
        return self._used

    @property
    def is_active(self) -> bool:
        return self._phase in (BombPhase.PLANTED, BombPhase.DETERMINATION)

    @property
    def target_id(self) -> Optional[int]:
        return self._target_id

    @property
    def password(self) -> Optional[int]:
        return self._password

    @property
    def phase(self) -> BombPhase:
        return self._phase

    @property
    def guardian_skipped(self) -> bool:
        return self._guardian_skipped

    def plant(self, target_id: int, password: int) -> bool:
        if self._used:
            return False
        if password not in VALID_PASSWORDS:
            logger.warning(f"炸弹密码无效: {password}")
            return False
        self._target_id = target_id
        self._password = password
        self._phase = BombPhase.PLANTED
        self._used = True
        return True

    def start_determination(self) -> bool:
        if self._phase != BombPhase.PLANTED:
            return False
        self._phase = BombPhase.DETERMINATION
        self._guardian_skipped = False
        return True

    def guardian_guess(self, guess: int) -> Optional[str]:
        """保镖猜密码，返回 'defused' / 'wrong'；不在判定阶段返回 None"""
        if self._phase != BombPhase.DETERMINATION or self._guardian_skipped:
            return None
        if guess == self._password:
            self._phase = BombPhase.DEFUSED
            return "defused"
        self._phase = BombPhase.PROTECTOR_DIED
        return "wrong"

    def guardian_skip(self) -> bool:
        if self._phase != BombPhase.DETERMINATION:
            return False
        self._guardian_skipped = True
        return True

    def target_guess(self, guess: int) -> Optional[str]:
        """被炸目标猜密码，返回 'defused' / 'exploded'；不在判定阶段返回 None"""
        if self._phase != BombPhase.DETERMINATION:
            return None
        if guess == self._password:
            self._phase = BombPhase.DEFUSED
            return "defused"
        self._phase = BombPhase.DETONATED
        return "exploded"

    def clear(self) -> None:
        self._target_id = None
        self._password = None
        self._phase = BombPhase.NONE
        self._guardian_skipped = False
        # _used 保持 True，炸弹每局只能用一次

    def to_dict(self) -> dict:
        return {
            "target_id": self._target_id,
            "password": self._password,
            "used": self._used,
            "phase": self._phase.value,
            "guardian_skipped": self._guardian_skipped,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> Bomb:
        data = data or {}
        bomb = cls()
        bomb._target_id = data.get("target_id")
        bomb._password = data.get("password")
        bomb._used = bool(data.get("used", False))
        bomb._phase = BombPhase(data.get("phase") or BombPhase.NONE.value)
        bomb._guardian_skipped = bool(data.get("guardian_skipped", False))
        return bomb
