"""夜晚步骤构建（主持人按顺序收集各角色行动）"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable

from models.game_models import NightActionType, NightStep, RoleDefinition, RoleId, Team
from roles.registry import get_night_roles

if TYPE_CHECKING:
    from game.state import GameState


# 盲夜黑手党互认步骤（不是真正的角色）
MAFIA_REVEAL_STEP = "mafiaReveal"


def _always(state: GameState) -> bool:
    return True


# 各夜晚行动的额外可用条件（角色存活之外）
_ELIGIBILITY: dict[NightActionType, Callable[[GameState], bool]] = {
    NightActionType.KILL: _always,
    NightActionType.MAFIA_HEAL: _always,
    NightActionType.BLOCK: _always,
    NightActionType.SILENCE: _always,
    NightActionType.BOMB: lambda s: not s.bomb.is_used,
    NightActionType.CURSE: lambda s: not s.get_alive_player_by_role(RoleId.JACK).curse.is_locked,
    NightActionType.SOLO_KILL: lambda s: s.can_zodiac_shoot(),
    NightActionType.HEAL: _always,
    NightActionType.INVESTIGATE: _always,
    NightActionType.KANE_REVEAL: lambda s: not s.kane_used and s.kane_pending_death is None,
    NightActionType.REVIVE: lambda s: not s.constantine_used and bool(s.get_revivable_players()),
    NightActionType.GIVE_BULLET: lambda s: s.bullet_manager.has_bullets,
    NightActionType.FRAMASON_RECRUIT: lambda s: s.framason.can_recruit,
    NightActionType.CHECK_NEGOTIATION: lambda s: s.can_negotiate(),
    NightActionType.SNIPE: lambda s: s.sniper_shots_remaining > 0,
    NightActionType.MAFIA_REVEAL: _always,
}


def get_step_actors(state: GameState, role: RoleDefinition) -> list[int]:
    """该步骤的行动者；教父死亡时由其余存活黑手党接替开枪"""
    actors = [p.player_id for p in state.players if p.is_alive and p.role_id == role.id]
    if not actors and role.id == RoleId.GODFATHER:
        actors = [p.player_id for p in state.get_team_players(Team.MAFIA)]
    return actors


def build_night_steps(state: GameState) -> list[NightStep]:
    """按优先级生成本晚需要收集的步骤（相同输入总是得到相同输出）"""
    steps = []
    for role in get_night_roles():
        actors = get_step_actors(state, role)
        if not actors:
            continue
        if not _ELIGIBILITY[role.night_action](state):
            continue
        steps.append(NightStep(role_id=role.id.value, action_type=role.night_action, actors=actors))
    return steps


def build_blind_night_steps(state: GameState) -> list[NightStep]:
    """盲夜：黑手党互认 + 杰克放诅咒"""
    steps = []
    mafia = state.get_team_players(Team.MAFIA)
    if mafia:
        steps.append(NightStep(
            role_id=MAFIA_REVEAL_STEP,
            action_type=NightActionType.MAFIA_REVEAL,
            actors=[p.player_id for p in mafia],
        ))

    jack = state.get_alive_player_by_role(RoleId.JACK)
    if jack and not jack.curse.is_locked:
        steps.append(NightStep(
            role_id=RoleId.JACK.value,
            action_type=NightActionType.CURSE,
            actors=[jack.player_id],
        ))
    return steps
