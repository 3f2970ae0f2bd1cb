"""白天结算 — 放逐、早晨开枪、实弹过期、炸弹判定、共济会污染"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from game.resolver import apply_death_chain
from models.game_models import BombPhase, BulletType, DeathCause, RoleId, Team
from roles.registry import get_role, get_team_name

if TYPE_CHECKING:
    from game.state import GameState
    from models.player import Player

logger = logging.getLogger(__name__)


def _fail(reason: str) -> dict:
    return {"success": False, "reason": reason}


# ========== 投票放逐 ==========

def eliminate_by_vote(game_state: GameState, target_id: int) -> dict:
    """投票放逐。投票免疫的角色不会出局（记录历史）"""
    target = game_state.get_player(target_id)
    if target is None or not target.is_alive:
        return _fail("invalid_target")

    if game_state.is_vote_immune(target_id):
        game_state.add_history("vote_immune", f"🗳️ {target.name} 免疫投票，没有出局。")
        logger.info(f"{target.name} 投票免疫")
        game_state.votes.clear()
        return {"success": False, "vote_immune": True, "jack_curse_triggered": False}

    target.kill(game_state.round, DeathCause.VOTE)
    game_state.add_history("death", f"🗳️ {target.name} 被投票放逐。")
    chain = apply_death_chain(game_state, [target_id])
    game_state.votes.clear()
    return {"success": True, "vote_immune": False, **chain}


# ========== 枪手子弹 ==========

def resolve_morning_shot(game_state: GameState, shooter_id: int, target_id: int) -> dict:
    """
    持有者白天开枪。

    空包弹永远无害；实弹在以下情况无害：目标昨晚被封锁、被治疗、
    护盾生效（护盾消耗）或目标免疫早晨开枪。否则目标死亡并公开阵营。
    """
    manager = game_state.bullet_manager
    shooter = game_state.get_player(shooter_id)
    target = game_state.get_player(target_id)

    if shooter is None or not shooter.is_alive:
        return _fail("invalid_shooter")
    if target is None or not target.is_alive:
        return _fail("invalid_target")
    if manager.get_player_bullet(shooter_id) is None:
        return _fail("no_bullet")
    if shooter_id == target_id and game_state.team_of(shooter) != Team.MAFIA:
        logger.warning(f"{shooter.name} 不能对自己开枪")
        return _fail("self_shot")

    bullet_type = manager.use_bullet(shooter_id)

    if bullet_type == BulletType.BLANK:
        game_state.add_history("shot_blank", f"🔫 {shooter.name} 向 {target.name} 开枪，是空包弹。")
        return {"success": True, "bullet_type": bullet_type.value, "killed": False}

    protection = _morning_shot_protection(game_state, target)
    if protection is not None:
        game_state.add_history(
            "shot_protected", f"🔫 {shooter.name} 向 {target.name} 开了实弹，但目标安然无恙。"
        )
        return {
            "success": True, "bullet_type": bullet_type.value,
            "killed": False, "protected_by": protection,
        }

    target.kill(game_state.round, DeathCause.LIVE_BULLET)
    team = game_state.team_of(target)
    game_state.add_history(
        "death", f"🔫 {target.name} 被 {shooter.name} 的实弹击中出局。（{get_team_name(team)}）"
    )
    chain = apply_death_chain(game_state, [target_id])
    return {
        "success": True, "bullet_type": bullet_type.value,
        "killed": True, "team": team.value if team else None, **chain,
    }


def _morning_shot_protection(game_state: GameState, target: Player) -> Optional[str]:
    if game_state.last_blocked_id == target.player_id:
        return "blocked"
    if target.healed:
        return "healed"
    if target.shield.absorb(DeathCause.LIVE_BULLET):
        return "shield"
    if get_role(target.role_id).morning_shot_immune:
        return "immune"
    return None


def resolve_live_expiration(game_state: GameState) -> list[dict]:
    """讨论结束：未使用的实弹爆炸，持有者死亡；所有子弹作废"""
    deaths = []
    for bullet in game_state.bullet_manager.get_unused_live_bullets():
        holder = game_state.get_player(bullet.holder_id)
        if holder is None or not holder.is_alive:
            continue
        holder.kill(game_state.round, DeathCause.LIVE_EXPLOSION)
        deaths.append({"holder_id": holder.player_id, "holder_name": holder.name})
        game_state.add_history("death", f"💥 {holder.name} 手里的实弹爆炸了。")

    game_state.bullet_manager.clear_day_bullets()
    if deaths:
        apply_death_chain(game_state, [d["holder_id"] for d in deaths])
    return deaths


def gunner_give_bullet(
    game_state: GameState, holder_id: int, bullet_type: BulletType
) -> bool:
    """主持人直接发子弹（不经过夜晚步骤）"""
    holder = game_state.get_player(holder_id)
    if holder is None or not holder.is_alive or holder.role_id == RoleId.GUNNER:
        return False
    return game_state.bullet_manager.give_bullet(holder_id, bullet_type, game_state.round)


# ========== 炸弹判定（午睡） ==========

def has_bomb_to_resolve(game_state: GameState) -> bool:
    bomb = game_state.bomb
    if bomb.phase not in (BombPhase.PLANTED, BombPhase.DETERMINATION):
        return False
    target = game_state.get_player(bomb.target_id)
    return target is not None and target.is_alive


def start_bomb_siesta(game_state: GameState) -> bool:
    bomb = game_state.bomb
    if not has_bomb_to_resolve(game_state):
        if bomb.is_active:
            # 目标在夜里已经死亡，炸弹失效
            bomb.clear()
        return False
    if not bomb.start_determination():
        return False
    game_state.add_history("bomb_siesta", "💣 午睡判定开始。")
    return True


def is_bodyguard_alive_for_bomb(game_state: GameState) -> bool:
    if game_state.bomb.phase != BombPhase.DETERMINATION or game_state.bomb.guardian_skipped:
        return False
    return game_state.get_alive_player_by_role(RoleId.BODYGUARD) is not None


def bomb_guardian_guess(game_state: GameState, guess: int) -> dict:
    bomb = game_state.bomb
    if not is_bodyguard_alive_for_bomb(game_state):
        return _fail("guardian_unavailable")
    bodyguard = game_state.get_alive_player_by_role(RoleId.BODYGUARD)

    outcome = bomb.guardian_guess(guess)
    if outcome is None:
        return _fail("no_active_bomb")

    if outcome == "defused":
        game_state.add_history("bomb_defused", f"💣 保镖 {bodyguard.name} 拆除了炸弹。")
        bomb.clear()
        return {"success": True, "result": outcome}

    bodyguard.kill(game_state.round, DeathCause.GUARDIAN_BOMB)
    game_state.add_history("death", f"💥 保镖 {bodyguard.name} 猜错密码，代替目标被炸死。")
    bomb.clear()
    chain = apply_death_chain(game_state, [bodyguard.player_id])
    return {"success": True, "result": outcome, "dead_id": bodyguard.player_id, **chain}


def bomb_guardian_skip(game_state: GameState) -> bool:
    if not game_state.bomb.guardian_skip():
        return False
    game_state.add_history("bomb_guardian_skip", "💣 保镖放弃猜密码。")
    return True


def bomb_target_guess(game_state: GameState, guess: int) -> dict:
    bomb = game_state.bomb
    if bomb.phase != BombPhase.DETERMINATION:
        return _fail("no_active_bomb")
    if game_state.get_alive_player_by_role(RoleId.BODYGUARD) and not bomb.guardian_skipped:
        return _fail("guardian_first")
    target = game_state.get_player(bomb.target_id)

    outcome = bomb.target_guess(guess)
    if outcome is None:
        return _fail("no_active_bomb")

    if outcome == "defused":
        game_state.add_history("bomb_defused", f"💣 {target.name} 猜对密码，炸弹被拆除。")
        bomb.clear()
        return {"success": True, "result": outcome}

    target.kill(game_state.round, DeathCause.BOMB)
    game_state.add_history("death", f"💥 {target.name} 猜错密码，被炸死。")
    bomb.clear()
    chain = apply_death_chain(game_state, [target.player_id])
    return {"success": True, "result": outcome, "dead_id": target.player_id, **chain}


# ========== 共济会 ==========

def has_framason_contamination(game_state: GameState) -> bool:
    return game_state.framason.is_contaminated


def resolve_framason_contamination(game_state: GameState) -> dict:
    """联盟被污染：首领和成员全部出局，被招募的坏人存活"""
    framason = game_state.framason
    recruit_id = framason.contaminated_recruit_id
    dead_ids = []
    for player_id in framason.resolve_contamination():
        player = game_state.get_player(player_id)
        if player is None or not player.is_alive:
            continue
        player.kill(game_state.round, DeathCause.FRAMASON)
        dead_ids.append(player_id)

    if dead_ids:
        names = "、".join(game_state.get_player(pid).name for pid in dead_ids)
        game_state.add_history("death", f"🔺 共济会被污染，{names} 出局。")
        apply_death_chain(game_state, dead_ids)
    return {"dead_ids": dead_ids, "recruit_id": recruit_id}


def get_framason_alliance_names(game_state: GameState) -> list[str]:
    names = []
    for player_id in game_state.framason.alliance_ids:
        player = game_state.get_player(player_id)
        if player:
            names.append(player.name)
    return names


# ========== 主持人 ==========

def moderator_eliminate(game_state: GameState, player_id: int) -> dict:
    """主持人直接淘汰（无法被复活）"""
    player = game_state.get_player(player_id)
    if player is None or not player.is_alive:
        return _fail("invalid_target")
    player.kill(game_state.round, DeathCause.MODERATOR)
    game_state.add_history("death", f"⚖️ 主持人淘汰了 {player.name}。")
    chain = apply_death_chain(game_state, [player_id])
    return {"success": True, **chain}
