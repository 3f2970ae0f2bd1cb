"""结算引擎 — 夜晚结算、连锁死亡、胜利判定"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from models.game_models import (
    DeathCause, GamePhase, GodfatherMode, InvestigationResult, NightActionRecord, NightActionType,
    NightResult, RoleId, Team,
)
from roles.registry import NEGOTIABLE_ROLES, get_role, get_team_name

if TYPE_CHECKING:
    from game.state import GameState
    from models.player import Player

logger = logging.getLogger(__name__)


class ResolveStep(str, Enum):
    KANE_DELAYED_DEATH = "kane_delayed_death"
    BLOCK = "block"
    HEAL = "heal"
    MAFIA_HEAL = "mafia_heal"
    LEADER = "leader"
    CURSE = "curse"
    SOLO_KILL = "solo_kill"
    SNIPE = "snipe"
    INVESTIGATE = "investigate"
    SILENCE = "silence"
    BOMB = "bomb"
    REVIVE = "revive"
    RECRUIT = "recruit"
    GIVE_BULLET = "give_bullet"
    KANE_REVEAL = "kane_reveal"
    CURSE_CHECK = "curse_check"
    FRAMASON_LEADER_DEATH = "framason_leader_death"


# 夜晚结算顺序（前面的效果可以改变后面的结果）
NIGHT_RESOLUTION_ORDER: tuple[ResolveStep, ...] = (
    ResolveStep.KANE_DELAYED_DEATH,      # 0  上一晚凯恩成功后的延迟死亡
    ResolveStep.BLOCK,                   # 1  巫师封锁
    ResolveStep.HEAL,                    # 2  华生医生
    ResolveStep.MAFIA_HEAL,              # 3  莱克特医生
    ResolveStep.LEADER,                  # 4  教父：开枪 / 屠宰 / 谈判
    ResolveStep.CURSE,                   # 5  杰克放诅咒
    ResolveStep.SOLO_KILL,               # 6  十二宫
    ResolveStep.SNIPE,                   # 7  狙击手
    ResolveStep.INVESTIGATE,             # 8  侦探
    ResolveStep.SILENCE,                 # 9  斗牛士
    ResolveStep.BOMB,                    # 10 炸弹客
    ResolveStep.REVIVE,                  # 11 康斯坦丁
    ResolveStep.RECRUIT,                 # 12 共济会
    ResolveStep.GIVE_BULLET,             # 13 枪手
    ResolveStep.KANE_REVEAL,             # 14 凯恩
    ResolveStep.CURSE_CHECK,             # 15 诅咒连锁
    ResolveStep.FRAMASON_LEADER_DEATH,   # -  共济会首领死亡
)

# 夜晚行动类型 → 结算步骤；None 为纯信息步骤（不改变状态）
ACTION_RESOLVE_STEP: dict[NightActionType, Optional[ResolveStep]] = {
    NightActionType.BLOCK: ResolveStep.BLOCK,
    NightActionType.HEAL: ResolveStep.HEAL,
    NightActionType.MAFIA_HEAL: ResolveStep.MAFIA_HEAL,
    NightActionType.KILL: ResolveStep.LEADER,
    NightActionType.CURSE: ResolveStep.CURSE,
    NightActionType.SOLO_KILL: ResolveStep.SOLO_KILL,
    NightActionType.SNIPE: ResolveStep.SNIPE,
    NightActionType.INVESTIGATE: ResolveStep.INVESTIGATE,
    NightActionType.SILENCE: ResolveStep.SILENCE,
    NightActionType.BOMB: ResolveStep.BOMB,
    NightActionType.REVIVE: ResolveStep.REVIVE,
    NightActionType.FRAMASON_RECRUIT: ResolveStep.RECRUIT,
    NightActionType.GIVE_BULLET: ResolveStep.GIVE_BULLET,
    NightActionType.KANE_REVEAL: ResolveStep.KANE_REVEAL,
    NightActionType.CHECK_NEGOTIATION: None,
    NightActionType.MAFIA_REVEAL: None,
}

if set(ACTION_RESOLVE_STEP) != set(NightActionType):
    raise RuntimeError("ACTION_RESOLVE_STEP 未覆盖全部夜晚行动类型")

# 侦探查验：黑手党为阳性，其余为阴性；教父故意显示阴性，嫌疑人故意显示阳性
INVESTIGATION_OVERRIDES = {
    RoleId.GODFATHER: InvestigationResult.NEGATIVE,
    RoleId.SUSPECT: InvestigationResult.POSITIVE,
}


def investigation_result_for(role_id: RoleId) -> InvestigationResult:
    if role_id in INVESTIGATION_OVERRIDES:
        return INVESTIGATION_OVERRIDES[role_id]
    role = get_role(role_id)
    if role and role.team == Team.MAFIA:
        return InvestigationResult.POSITIVE
    return InvestigationResult.NEGATIVE


@dataclass
class _NightContext:
    state: GameState
    actions: dict[str, NightActionRecord]   # 已经过封锁过滤的工作副本
    result: NightResult
    blocked_roles: set[str] = field(default_factory=set)

    def action(self, role_id: RoleId) -> Optional[NightActionRecord]:
        record = self.actions.get(role_id.value)
        if record is None or record.is_skip:
            return None
        return record

    def target_of(self, record: NightActionRecord) -> Optional[Player]:
        return self.state.get_player(record.target_id)

    def actor_of(self, record: NightActionRecord) -> Optional[Player]:
        return self.state.get_player(record.actor_ids[0]) if record.actor_ids else None


def resolve_night(game_state: GameState) -> NightResult:
    """
    夜晚结算，返回结构化结果并写入历史。

    分两个阶段：
    1. 封锁：在行动表的工作副本上移除被封锁玩家的所有行动（与记录顺序无关）
    2. 其余效果：按 NIGHT_RESOLUTION_ORDER 依次作用于过滤后的行动表
    """
    actions = dict(game_state.night_actions)
    ctx = _NightContext(state=game_state, actions=actions, result=NightResult())

    _suppress_blocked_actions(ctx)

    for step in NIGHT_RESOLUTION_ORDER:
        _HANDLERS[step](ctx)

    if not ctx.result.killed:
        game_state.add_history("peaceful_night", "🌙 平安夜，无人死亡。")

    logger.info(
        f"第{game_state.round}夜结算完成：死亡 {ctx.result.killed}，"
        f"被救 {ctx.result.saved}，护盾 {ctx.result.shielded}"
    )
    return ctx.result


# ========== 阶段一：封锁 ==========

def _suppress_blocked_actions(ctx: _NightContext) -> None:
    block = ctx.action(RoleId.JADOOGAR)
    if block is None:
        return
    blocked_id = block.target_id
    for role_key, record in list(ctx.actions.items()):
        if role_key == RoleId.JADOOGAR.value:
            continue
        if blocked_id in record.actor_ids:
            del ctx.actions[role_key]
            ctx.blocked_roles.add(role_key)
            logger.info(f"{blocked_id}号被封锁，{role_key} 的行动作废")


# ========== 公共工具 ==========

def _attack(ctx: _NightContext, target: Player, cause: DeathCause) -> str:
    """
    普通夜间攻击：先看治疗（消耗），再看护盾，最后死亡。

    返回 saved / shielded / killed；目标当晚已死返回 dead（不改变任何状态）
    """
    state, result = ctx.state, ctx.result
    if not target.is_alive:
        return "dead"
    if target.healed:
        target.healed = False
        result.saved.append(target.player_id)
        state.add_history("save", f"⚕️ {target.name} 被医生救下。")
        return "saved"
    if target.try_kill(state.round, cause):
        result.killed.append(target.player_id)
        return "killed"
    result.shielded.append(target.player_id)
    state.add_history("shield", f"🛡️ {target.name} 的护盾挡下了攻击。")
    return "shielded"


def _apply_heal(
    ctx: _NightContext,
    record: NightActionRecord,
    counter_attr: str,
    limit: int,
    last_target_attr: str,
    label: str,
) -> bool:
    state = ctx.state
    target = ctx.target_of(record)
    if target is None or not target.is_alive:
        return False
    if target.player_id in record.actor_ids:
        used = getattr(state, counter_attr)
        if used >= limit:
            state.add_history("heal_rejected", f"{label}自救次数已用完。")
            logger.warning(f"{label}自救次数已达上限 {limit}")
            return False
        setattr(state, counter_attr, used + 1)
    target.healed = True
    setattr(state, last_target_attr, target.player_id)
    return True


# ========== 阶段二：各结算步骤 ==========

def _resolve_kane_delayed_death(ctx: _NightContext) -> None:
    state = ctx.state
    kane_id = state.kane_pending_death
    if kane_id is None:
        return
    state.kane_pending_death = None
    kane = state.get_player(kane_id)
    if kane and kane.is_alive:
        kane.kill(state.round, DeathCause.KANE)
        ctx.result.killed.append(kane_id)
        ctx.result.kane_died = kane_id
        state.add_history("death", f"🎖️ {kane.name}（公民凯恩）按约定离开了游戏。")


def _resolve_block(ctx: _NightContext) -> None:
    state = ctx.state
    block = ctx.action(RoleId.JADOOGAR)
    if block is None:
        state.last_blocked_id = None
        return
    ctx.result.blocked = block.target_id
    state.last_blocked_id = block.target_id
    target = ctx.target_of(block)
    state.add_history("block", f"🧙 巫师封锁了 {target.name if target else '?'} 的能力。")


def _resolve_heal(ctx: _NightContext) -> None:
    state = ctx.state
    record = ctx.action(RoleId.DR_WATSON)
    if record is None:
        state.last_watson_target = None
        return
    _apply_heal(
        ctx, record, "watson_self_heals", state.config.watson_self_heal_limit,
        "last_watson_target", "华生医生",
    )


def _resolve_mafia_heal(ctx: _NightContext) -> None:
    state = ctx.state
    record = ctx.action(RoleId.DR_LECTER)
    if record is None:
        state.last_lecter_target = None
        return
    target = ctx.target_of(record)
    if target is None or state.team_of(target) != Team.MAFIA:
        logger.info("莱克特医生只能救黑手党，本次无效")
        return
    _apply_heal(
        ctx, record, "lecter_self_heals", state.config.lecter_self_heal_limit,
        "last_lecter_target", "莱克特医生",
    )


def _resolve_leader(ctx: _NightContext) -> None:
    state, result = ctx.state, ctx.result
    record = ctx.action(RoleId.GODFATHER)
    if record is None:
        return
    target = ctx.target_of(record)
    if target is None or not target.is_alive:
        return

    mode = record.mode or GodfatherMode.SHOOT

    if mode == GodfatherMode.SALAKHI:
        correct = record.guessed_role_id is not None and target.role_id == record.guessed_role_id
        result.salakhied = {"player_id": target.player_id, "correct": correct}
        if correct:
            # 屠宰无视治疗和护盾
            target.kill(state.round, DeathCause.SALAKHI)
            result.killed.append(target.player_id)
            state.add_history(
                "death", f"🗡️ {target.name} 被屠宰。（{get_role(target.role_id).name}）"
            )
        else:
            state.add_history("salakhi_fail", f"🗡️ 屠宰猜错了，{target.name} 存活。")
        return

    if mode == GodfatherMode.NEGOTIATE:
        success = state.can_negotiate() and target.role_id in NEGOTIABLE_ROLES
        result.negotiation = {"player_id": target.player_id, "success": success}
        if success:
            target.role_id = RoleId.SIMPLE_MAFIA
            state.add_history("negotiate", f"🤝 谈判成功，{target.name} 加入了黑手党。")
        else:
            state.add_history("negotiate_fail", "🤝 谈判失败，本晚黑手党没有开枪。")
        return

    if get_role(target.role_id).shoot_immune:
        result.immune = target.player_id
        state.add_history("immune", f"🔫 黑手党对 {target.name} 的射击无效（免疫）。")
        return

    if _attack(ctx, target, DeathCause.MAFIA) == "killed":
        state.add_history("death", f"🔫 {target.name} 被黑手党击杀。")


def _resolve_curse(ctx: _NightContext) -> None:
    state = ctx.state
    record = ctx.action(RoleId.JACK)
    if record is None:
        return
    jack = ctx.actor_of(record)
    target = ctx.target_of(record)
    if jack is None or not jack.is_alive or target is None:
        return
    if jack.curse.place(target.player_id):
        state.add_history("telesm", f"🔪 杰克把诅咒放在了 {target.name} 身上。")
    else:
        state.add_history("telesm_locked", "🔪 杰克的诅咒已锁定，无法移动。")


def _resolve_solo_kill(ctx: _NightContext) -> None:
    state, result = ctx.state, ctx.result
    record = ctx.action(RoleId.ZODIAC)
    if record is None:
        return
    zodiac = ctx.actor_of(record)
    target = ctx.target_of(record)
    if zodiac is None or not zodiac.is_alive or target is None or not target.is_alive:
        return

    if target.role_id == RoleId.BODYGUARD:
        # 十二宫打中保镖：十二宫自己出局，保镖存活
        zodiac.kill(state.round, DeathCause.ZODIAC_BODYGUARD)
        result.killed.append(zodiac.player_id)
        state.add_history("death", "♈ 十二宫射向保镖，自己出局。")
        return

    if _attack(ctx, target, DeathCause.ZODIAC) == "killed":
        state.add_history("death", f"♈ {target.name} 被十二宫击杀。")


def _resolve_snipe(ctx: _NightContext) -> None:
    state, result = ctx.state, ctx.result
    record = ctx.action(RoleId.SNIPER)
    if record is None:
        return
    sniper = ctx.actor_of(record)
    target = ctx.target_of(record)
    if sniper is None or not sniper.is_alive or target is None or not target.is_alive:
        return

    state.sniper_shots_used += 1
    team = state.team_of(target)

    if team == Team.INDEPENDENT:
        result.sniper_shot = {"player_id": target.player_id, "outcome": "wasted"}
        state.add_history("snipe_wasted", "🎯 狙击手的子弹打在独立角色身上，毫无效果。")
        return

    if team == Team.MAFIA:
        outcome = _attack(ctx, target, DeathCause.SNIPER)
        result.sniper_shot = {"player_id": target.player_id, "outcome": outcome}
        if outcome == "killed":
            state.add_history(
                "death", f"🎯 {target.name} 被狙击手击杀。（{get_role(target.role_id).name}）"
            )
        return

    # 打中市民：狙击手自己承担后果
    if sniper.try_kill(state.round, DeathCause.SNIPER_MISS):
        result.killed.append(sniper.player_id)
        result.sniper_shot = {"player_id": target.player_id, "outcome": "self_killed"}
        state.add_history("death", "🎯 狙击手打错了人，自己出局。")
    else:
        result.shielded.append(sniper.player_id)
        result.sniper_shot = {"player_id": target.player_id, "outcome": "self_shielded"}


def _resolve_investigate(ctx: _NightContext) -> None:
    state, result = ctx.state, ctx.result
    if RoleId.DETECTIVE.value in ctx.blocked_roles:
        original = state.night_actions.get(RoleId.DETECTIVE.value)
        result.investigated = {
            "player_id": original.target_id if original else None,
            "result": InvestigationResult.BLOCKED.value,
        }
        state.add_history("investigate", "🔍 侦探被封锁，查验无结果。")
        return

    record = ctx.action(RoleId.DETECTIVE)
    if record is None:
        return
    target = ctx.target_of(record)
    if target is None:
        return
    outcome = investigation_result_for(target.role_id)
    result.investigated = {"player_id": target.player_id, "result": outcome.value}
    state.add_history("investigate", f"🔍 侦探查验 {target.name}：{outcome.value}")


def _resolve_silence(ctx: _NightContext) -> None:
    record = ctx.action(RoleId.MATADOR)
    if record is None:
        return
    target = ctx.target_of(record)
    if target is None or not target.is_alive:
        return
    target.silenced = True
    ctx.result.silenced = target.player_id
    ctx.state.add_history("silence", f"🤐 {target.name} 被斗牛士禁言。")


def _resolve_bomb(ctx: _NightContext) -> None:
    state = ctx.state
    record = ctx.action(RoleId.BOMBER)
    if record is None:
        return
    target = ctx.target_of(record)
    if target is None or not target.is_alive:
        return
    if state.bomb.plant(target.player_id, record.password):
        ctx.result.bombed = target.player_id
        state.add_history("bomb", f"💣 炸弹被放在了 {target.name} 面前。")
    else:
        state.add_history("bomb_fail", "💣 炸弹放置失败（已用过或密码无效）。")


def _resolve_revive(ctx: _NightContext) -> None:
    state = ctx.state
    record = ctx.action(RoleId.CONSTANTINE)
    if record is None or state.constantine_used:
        return
    target = ctx.target_of(record)
    if target is None or not state.is_revivable(target):
        state.add_history("revive_fail", "✝️ 康斯坦丁选择的目标无法复活。")
        return
    target.revive()
    state.constantine_used = True
    ctx.result.revived = target.player_id
    state.add_history("revive", f"✝️ {target.name} 被康斯坦丁复活。")


def _resolve_recruit(ctx: _NightContext) -> None:
    state = ctx.state
    record = ctx.action(RoleId.FREEMASON)
    if record is None or not state.framason.can_recruit:
        return
    target = ctx.target_of(record)
    if target is None or not target.is_alive or target.player_id in state.framason.alliance_ids:
        return

    outcome = state.framason.recruit(target.player_id, target.role_id, state.team_of(target))
    ctx.result.framason_recruit = {"player_id": target.player_id, **outcome}
    if outcome["safe"]:
        state.add_history("framason", f"🔺 {target.name} 加入了共济会。")
    elif outcome["contaminated"]:
        state.add_history("framason_contaminated", f"🔺 共济会招募了 {target.name}，联盟被污染！")


def _resolve_give_bullet(ctx: _NightContext) -> None:
    state, result = ctx.state, ctx.result
    manager = state.bullet_manager

    # 持有者已死亡的子弹自动退回
    for bullet in manager.active_bullets:
        holder = state.get_player(bullet.holder_id)
        if holder is None or not holder.is_alive:
            manager.return_bullet(bullet.type, bullet.holder_id)
            result.bullets_returned.append(bullet.to_dict())

    record = ctx.action(RoleId.GUNNER)
    if record is None:
        return
    for assignment in record.assignments:
        holder = state.get_player(assignment.holder_id)
        entry = {"holder_id": assignment.holder_id, "type": assignment.type.value}
        if holder is None or not holder.is_alive:
            result.bullets_returned.append(entry)
            continue
        if holder.player_id in record.actor_ids:
            continue
        if manager.give_bullet(holder.player_id, assignment.type, state.round):
            result.bullets_given.append(entry)
        else:
            logger.warning(f"给 {holder.player_id} 号发 {assignment.type.value} 子弹失败")
    if result.bullets_given:
        state.add_history("gunner", f"🔫 枪手发出了 {len(result.bullets_given)} 颗子弹。")


def _resolve_kane_reveal(ctx: _NightContext) -> None:
    state, result = ctx.state, ctx.result
    record = ctx.action(RoleId.KANE)
    if record is None:
        return
    kane = ctx.actor_of(record)
    target = ctx.target_of(record)
    if kane is None or target is None:
        return

    if not target.is_alive or target.player_id in result.killed:
        # 目标当晚已死，能力不消耗
        result.kane_returned = True
        state.add_history("kane_returned", "🎖️ 凯恩的目标当晚已死亡，能力保留。")
        return

    state.kane_used = True
    team = state.team_of(target)
    if team in (Team.MAFIA, Team.INDEPENDENT):
        result.kane_reveal = {"player_id": target.player_id, "role_id": target.role_id.value}
        state.kane_pending_death = kane.player_id
        state.add_history(
            "kane_reveal",
            f"🎖️ 公民凯恩揭示：{target.name} 的身份是 {get_role(target.role_id).name}。",
        )
        if target.role_id == RoleId.JACK and not target.curse.is_locked:
            # 杰克身份公开，诅咒从此不能再放置
            target.curse.lock()
            state.add_history("telesm_locked", f"🔪 {target.name} 的身份已公开，诅咒被锁定。")
    else:
        state.add_history("kane_miss", "🎖️ 凯恩选中的是市民，什么也没有发生。")


def _resolve_curse_check(ctx: _NightContext) -> None:
    jack_id = check_curse_chain(ctx.state, list(ctx.result.killed))
    if jack_id is not None:
        ctx.result.killed.append(jack_id)
        ctx.result.jack_curse_triggered = True


def _resolve_framason_leader_death(ctx: _NightContext) -> None:
    if check_framason_leader_death(ctx.state, ctx.result.killed):
        ctx.result.framason_leader_died = True


_HANDLERS: dict[ResolveStep, Callable[[_NightContext], None]] = {
    ResolveStep.KANE_DELAYED_DEATH: _resolve_kane_delayed_death,
    ResolveStep.BLOCK: _resolve_block,
    ResolveStep.HEAL: _resolve_heal,
    ResolveStep.MAFIA_HEAL: _resolve_mafia_heal,
    ResolveStep.LEADER: _resolve_leader,
    ResolveStep.CURSE: _resolve_curse,
    ResolveStep.SOLO_KILL: _resolve_solo_kill,
    ResolveStep.SNIPE: _resolve_snipe,
    ResolveStep.INVESTIGATE: _resolve_investigate,
    ResolveStep.SILENCE: _resolve_silence,
    ResolveStep.BOMB: _resolve_bomb,
    ResolveStep.REVIVE: _resolve_revive,
    ResolveStep.RECRUIT: _resolve_recruit,
    ResolveStep.GIVE_BULLET: _resolve_give_bullet,
    ResolveStep.KANE_REVEAL: _resolve_kane_reveal,
    ResolveStep.CURSE_CHECK: _resolve_curse_check,
    ResolveStep.FRAMASON_LEADER_DEATH: _resolve_framason_leader_death,
}


# ========== 连锁死亡（夜晚与白天共用） ==========

def check_curse_chain(game_state: GameState, killed_ids: list[int]) -> Optional[int]:
    """诅咒目标死亡时杰克随之出局，返回杰克的 ID（未触发返回 None）"""
    jack = game_state.get_alive_player_by_role(RoleId.JACK)
    if jack is None or not jack.curse.is_active:
        return None
    for killed_id in killed_ids:
        if jack.curse.is_triggered_by(killed_id):
            jack.kill(game_state.round, DeathCause.CURSE)
            victim = game_state.get_player(killed_id)
            game_state.add_history(
                "death",
                f"🔪 {victim.name if victim else '?'} 死亡，被诅咒绑定的杰克一同出局。",
            )
            return jack.player_id
    return None


def check_framason_leader_death(game_state: GameState, killed_ids: list[int]) -> bool:
    """共济会首领死亡后联盟失效（不会连带成员）"""
    framason = game_state.framason
    if framason.leader_id is None or framason.leader_id not in killed_ids:
        return False
    if framason.is_active:
        framason.on_leader_death()
        game_state.add_history("framason_inactive", "🔺 共济会首领死亡，联盟不再招募。")
    return True


def apply_death_chain(game_state: GameState, killed_ids: list[int]) -> dict:
    """白天任何出局事件之后调用：诅咒连锁 + 共济会首领"""
    extra = {"jack_curse_triggered": False, "jack_id": None}
    jack_id = check_curse_chain(game_state, killed_ids)
    if jack_id is not None:
        extra["jack_curse_triggered"] = True
        extra["jack_id"] = jack_id
        killed_ids = [*killed_ids, jack_id]
    check_framason_leader_death(game_state, killed_ids)
    return extra


# ========== 胜利判定 ==========

def check_victory(game_state: GameState) -> Optional[Team]:
    """检查胜利条件，按顺序第一个满足的阵营获胜，并冻结阶段为 ended"""
    if game_state.winner is not None:
        return game_state.winner

    counts = game_state.get_team_counts()
    mafia = counts[Team.MAFIA.value]
    citizen = counts[Team.CITIZEN.value]
    independent = counts[Team.INDEPENDENT.value]

    winner = None
    if mafia == 0 and independent == 0:
        winner = Team.CITIZEN
    elif mafia >= citizen + independent:
        winner = Team.MAFIA
    elif independent > 0 and counts["total"] <= 2 and mafia == 0:
        winner = Team.INDEPENDENT

    if winner is not None:
        game_state.winner = winner
        game_state.phase = GamePhase.ENDED
        game_state.add_history("win", f"🏆 {get_team_name(winner)}获胜！")
        logger.info(f"游戏 {game_state.game_id} 结束：{winner.value} 获胜")
    return winner
