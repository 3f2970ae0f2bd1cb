"""投票统计（公民凯恩一人两票）"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from models.game_models import RoleId

if TYPE_CHECKING:
    from game.state import GameState

logger = logging.getLogger(__name__)

# 特殊投票权重
VOTE_WEIGHTS = {RoleId.KANE: 2}


def calculate_vote_tally(
    game_state: GameState,
    votes: dict[int, int],  # voter_id -> target_id
) -> dict[int, int]:
    """
    计算每名被投玩家的得票。

    Args:
        game_state: 游戏状态
        votes: 投票映射 {投票者ID: 目标ID}

    Returns:
        {目标ID: 票数}，死亡投票者的票不计入
    """
    tally: dict[int, int] = {}

    for voter_id, target_id in votes.items():
        voter = game_state.get_player(voter_id)
        if not voter or not voter.is_alive:
            continue
        weight = VOTE_WEIGHTS.get(voter.role_id, 1)
        tally[target_id] = tally.get(target_id, 0) + weight

    return tally


def get_vote_leader(tally: dict[int, int]) -> int | None:
    """得票最多者；平票（含多人平票）返回 None"""
    if not tally:
        return None

    max_votes = max(tally.values())
    top_players = [pid for pid, cnt in tally.items() if cnt == max_votes]

    if len(top_players) > 1:
        logger.info(f"平票: {top_players}")
        return None

    return top_players[0]
