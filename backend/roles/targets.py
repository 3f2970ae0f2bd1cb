"""夜晚步骤的可选目标（主持人界面使用，结算本身信任已记录的行动）"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from models.game_models import GodfatherMode, NightStep, RoleId, Team
from roles.registry import get_role

if TYPE_CHECKING:
    from game.state import GameState
    from models.player import Player


def get_valid_targets(
    state: GameState,
    step: NightStep,
    mode: Optional[GodfatherMode] = None,
) -> list[Player]:
    """按角色过滤当前步骤的候选目标"""
    alive = state.get_alive_players()

    if step.role_id == RoleId.DR_LECTER:
        return [
            p for p in alive
            if state.team_of(p) == Team.MAFIA and state.can_dr_lecter_heal(p.player_id)
        ]

    if step.role_id == RoleId.DR_WATSON:
        return [p for p in alive if state.can_dr_watson_heal(p.player_id)]

    if step.role_id == RoleId.CONSTANTINE:
        return state.get_revivable_players()

    if step.role_id == RoleId.JADOOGAR:
        # 巫师只能封锁市民和独立角色
        return [
            p for p in alive
            if state.team_of(p) in (Team.CITIZEN, Team.INDEPENDENT) and state.can_block(p.player_id)
        ]

    if step.role_id == RoleId.GODFATHER:
        targets = [
            p for p in alive
            if p.player_id not in step.actors and state.team_of(p) != Team.MAFIA
        ]
        if mode == GodfatherMode.SHOOT:
            targets = [p for p in targets if not get_role(p.role_id).shoot_immune]
        return targets

    if step.role_id == RoleId.GUNNER:
        return [
            p for p in alive
            if p.player_id not in step.actors
            and state.bullet_manager.get_player_bullet(p.player_id) is None
        ]

    if step.role_id == RoleId.FREEMASON:
        alliance = set(state.framason.alliance_ids)
        return [p for p in alive if p.player_id not in alliance]

    if step.role_id == RoleId.JACK:
        return [p for p in alive if p.player_id not in step.actors]

    return alive
