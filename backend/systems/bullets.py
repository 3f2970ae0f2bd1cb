"""枪手子弹管理

枪手夜里分发子弹：
- 空包弹：永远无害
- 实弹：除非目标被救/被护盾挡/昨晚被封锁，否则致命
每晚可以发任意多颗（不超过库存），但每人同一时间最多持有一颗。

白天持有者可以宣布开枪；讨论结束（投票开始）时未使用的实弹爆炸，持有者死亡，
剩余空包弹同时作废。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from models.game_models import BulletType

logger = logging.getLogger(__name__)


@dataclass
class ActiveBullet:
    holder_id: int
    type: BulletType
    given_round: int

    def to_dict(self) -> dict:
        return {"holder_id": self.holder_id, "type": self.type.value, "given_round": self.given_round}


class BulletManager:

    def __init__(self):
        self._blank_max = 2
        self._live_max = 2
        self._blank_remaining = 2
        self._live_remaining = 2
        self._active_bullets: list[ActiveBullet] = []
        self._active = False  # 分配角色后（有枪手时）才启用

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def blank_max(self) -> int:
        return self._blank_max

    @property
    def live_max(self) -> int:
        return self._live_max

    @property
    def blank_remaining(self) -> int:
        return self._blank_remaining

    @property
    def live_remaining(self) -> int:
        return self._live_remaining

    @property
    def total_remaining(self) -> int:
        return self._blank_remaining + self._live_remaining

    @property
    def has_bullets(self) -> bool:
        return self._active and self.total_remaining > 0

    @property
    def active_bullets(self) -> list[ActiveBullet]:
        return list(self._active_bullets)

    def init(self, blank_max: int = 2, live_max: int = 2) -> None:
        self._blank_max = blank_max
        self._live_max = live_max
        self._blank_remaining = blank_max
        self._live_remaining = live_max
        self._active_bullets = []
        self._active = True

    def remaining(self, bullet_type: BulletType) -> int:
        return self._blank_remaining if bullet_type == BulletType.BLANK else self._live_remaining

    def get_player_bullet(self, holder_id: int) -> ActiveBullet | None:
        for bullet in self._active_bullets:
            if bullet.holder_id == holder_id:
                return bullet
        return None

    def give_bullet(self, holder_id: int, bullet_type: BulletType, round_given: int) -> bool:
        if self.remaining(bullet_type) <= 0:
            return False
        if self.get_player_bullet(holder_id) is not None:
            logger.warning(f"{holder_id}号已持有子弹，不能再发")
            return False

        if bullet_type == BulletType.BLANK:
            self._blank_remaining -= 1
        else:
            self._live_remaining -= 1
        self._active_bullets.append(ActiveBullet(holder_id, bullet_type, round_given))
        return True

    def return_bullet(self, bullet_type: BulletType, holder_id: int | None = None) -> bool:
        """退回库存（例如持有者已死亡）；库存 + 在外子弹 不会超过上限"""
        for idx in range(len(self._active_bullets) - 1, -1, -1):
            bullet = self._active_bullets[idx]
            if bullet.type == bullet_type and (holder_id is None or bullet.holder_id == holder_id):
                del self._active_bullets[idx]
                break

        outstanding = sum(1 for b in self._active_bullets if b.type == bullet_type)
        maximum = self._blank_max if bullet_type == BulletType.BLANK else self._live_max
        if self.remaining(bullet_type) + outstanding >= maximum:
            return False

        if bullet_type == BulletType.BLANK:
            self._blank_remaining += 1
        else:
            self._live_remaining += 1
        return True

    def use_bullet(self, holder_id: int) -> BulletType | None:
        for idx, bullet in enumerate(self._active_bullets):
            if bullet.holder_id == holder_id:
                del self._active_bullets[idx]
                return bullet.type
        return None

    def get_unused_live_bullets(self) -> list[ActiveBullet]:
        return [b for b in self._active_bullets if b.type == BulletType.LIVE]

    def clear_day_bullets(self) -> None:
        self._active_bullets = []

    def to_dict(self) -> dict:
        return {
            "blank_max": self._blank_max,
            "live_max": self._live_max,
            "blank_remaining": self._blank_remaining,
            "live_remaining": self._live_remaining,
            "active_bullets": [b.to_dict() for b in self._active_bullets],
            "active": self._active,
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> BulletManager:
        data = data or {}
        manager = cls()
        manager._blank_max = data.get("blank_max", 2)
        manager._live_max = data.get("live_max", 2)
        manager._blank_remaining = data.get("blank_remaining", manager._blank_max)
        manager._live_remaining = data.get("live_remaining", manager._live_max)
        manager._active_bullets = [
            ActiveBullet(b["holder_id"], BulletType(b["type"]), b.get("given_round", 0))
            for b in data.get("active_bullets") or []
        ]
        manager._active = bool(data.get("active", False))
        return manager
