"""游戏主引擎 — 主持人操作入口（同步、单线程）

主持人是唯一的驱动者：每个方法对应一次主持人操作，
按调用顺序修改 GameState，并通过事件回调通知界面层。
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from game import day
from game.phase import build_blind_night_steps, build_night_steps
from game.resolver import check_victory, resolve_night
from game.state import GameState
from models.game_models import (
    BulletType, GamePhase, GodfatherMode, NightActionRecord, NightActionType,
    NightResult, NightStep, RoleId, Team,
)
from models.player import Player
from roles.targets import get_valid_targets
from systems.voting import calculate_vote_tally, get_vote_leader

logger = logging.getLogger(__name__)

# 事件回调类型：接收事件字典，用于界面层刷新
EventCallback = Callable[[dict], None]

# 只用于展示、不进入结算的步骤
_INFORMATIONAL_ACTIONS = (NightActionType.MAFIA_REVEAL, NightActionType.CHECK_NEGOTIATION)


class GameEngine:
    """游戏主引擎"""

    def __init__(self, game_state: GameState, event_callback: EventCallback | None = None):
        self.state = game_state
        self.emit = event_callback or self._noop_callback

    @staticmethod
    def _noop_callback(event: dict) -> None:
        pass

    @classmethod
    def create(cls, game_id: str, event_callback: EventCallback | None = None) -> GameEngine:
        return cls(GameState.create(game_id), event_callback)

    # ========== 开局设置 ==========

    def add_player(self, name: str) -> Optional[Player]:
        return self.state.add_player(name)

    def remove_player(self, player_id: int) -> None:
        self.state.remove_player(player_id)

    def set_selected_roles(self, roles: dict) -> None:
        self.state.set_selected_roles(roles)

    def validate_setup(self) -> list[str]:
        return self.state.validate_setup()

    def assign_roles(self) -> list[str]:
        """校验通过后随机分配角色，返回错误列表（为空表示成功）"""
        if self.state.phase != GamePhase.SETUP:
            return ["角色已经分配，只能在开局阶段分配角色。"]
        errors = self.state.validate_setup()
        if errors:
            return errors
        self.state.assign_roles_randomly()
        self.state.add_history("setup", f"🎭 角色已分配，共 {len(self.state.players)} 名玩家。")
        self.emit({"type": "game.roles_assigned", "data": {"players": len(self.state.players)}})
        return []

    # ========== 阶段切换 ==========

    def start_blind_day(self) -> None:
        self.state.phase = GamePhase.BLIND_DAY
        self.state.add_history("phase", "☀️ 介绍日开始。")
        self._emit_phase()

    def start_blind_night(self) -> None:
        self.state.round = 1
        self.state.phase = GamePhase.BLIND_NIGHT
        self._begin_night(build_blind_night_steps)
        self.state.add_history("phase", "🌙 介绍夜开始。")
        self._emit_phase()

    def start_night(self) -> None:
        self.state.round += 1
        self.state.phase = GamePhase.NIGHT
        self._begin_night(build_night_steps)
        self.state.add_history("phase", f"🌙 第{self.state.round}夜开始。")
        self._emit_phase()

    def start_day(self) -> None:
        self.state.phase = GamePhase.DAY
        self.state.votes.clear()
        self.state.add_history("phase", f"☀️ 第{self.state.round}天开始。")
        self._emit_phase()

    def _begin_night(self, builder: Callable[[GameState], list[NightStep]]) -> None:
        state = self.state
        state.night_actions.clear()
        state.night_resolved = False
        state.votes.clear()
        for player in state.players:
            player.curse.clear()
            player.reset_night_flags()
        state.night_steps = builder(state)
        state.current_night_step = 0
        logger.info(
            f"第{state.round}夜步骤：{[s.role_id for s in state.night_steps]}"
        )

    def _emit_phase(self) -> None:
        self.emit({"type": "game.phase_change", "data": {
            "phase": self.state.phase.value,
            "round": self.state.round,
        }})

    # ========== 夜晚步骤 ==========

    def _godfather_negotiated(self) -> bool:
        record = self.state.night_actions.get(RoleId.GODFATHER.value)
        return (
            record is not None
            and record.mode == GodfatherMode.NEGOTIATE
            and record.target_id is not None
        )

    def get_current_night_step(self) -> Optional[NightStep]:
        """当前待收集的步骤；教父没有谈判时自动跳过记者步骤"""
        state = self.state
        while state.current_night_step < len(state.night_steps):
            step = state.night_steps[state.current_night_step]
            if step.action_type == NightActionType.CHECK_NEGOTIATION and not self._godfather_negotiated():
                step.completed = True
                state.current_night_step += 1
                continue
            return step
        return None

    def record_night_action(self, target_id: Optional[int], extra: Optional[dict] = None) -> bool:
        step = self.get_current_night_step()
        if step is None:
            return False

        try:
            record = NightActionRecord.from_extra(step.actors, step.action_type, target_id, extra)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"{step.role_id} 的附加数据无效: {e}")
            return False

        if step.action_type not in _INFORMATIONAL_ACTIONS:
            self.state.night_actions[step.role_id] = record
        step.target_id = target_id
        self._advance_step(step)
        return True

    def skip_night_action(self) -> bool:
        step = self.get_current_night_step()
        if step is None:
            return False
        self._advance_step(step)
        return True

    def _advance_step(self, step: NightStep) -> None:
        step.completed = True
        self.state.current_night_step += 1
        self.emit({"type": "night.step_done", "data": step.to_dict()})

    def is_night_complete(self) -> bool:
        return self.get_current_night_step() is None

    def resolve_night(self) -> NightResult:
        if self.state.phase not in (GamePhase.NIGHT, GamePhase.BLIND_NIGHT):
            logger.warning(f"当前阶段 {self.state.phase.value} 不能结算夜晚")
            return NightResult()

        if self.state.night_resolved:
            logger.warning(f"第{self.state.round}夜已经结算过，忽略重复结算")
            return NightResult()

        result = resolve_night(self.state)
        self.state.night_resolved = True
        self.emit({"type": "night.resolved", "data": result.to_dict()})
        self._check_victory()
        return result

    # ========== 白天 ==========

    def cast_vote(self, voter_id: int, target_id: int) -> bool:
        voter = self.state.get_player(voter_id)
        target = self.state.get_player(target_id)
        if not voter or not voter.is_alive or not target or not target.is_alive:
            return False
        self.state.votes[voter_id] = target_id
        return True

    def remove_vote(self, voter_id: int) -> None:
        self.state.votes.pop(voter_id, None)

    def get_vote_tally(self) -> dict[int, int]:
        return calculate_vote_tally(self.state, self.state.votes)

    def get_vote_leader(self) -> Optional[int]:
        return get_vote_leader(self.get_vote_tally())

    def eliminate_by_vote(self, target_id: int) -> dict:
        return self._after_day_event(day.eliminate_by_vote(self.state, target_id))

    def gunner_give_bullet(self, holder_id: int, bullet_type: BulletType | str) -> bool:
        return day.gunner_give_bullet(self.state, holder_id, BulletType(bullet_type))

    def resolve_morning_shot(self, shooter_id: int, target_id: int) -> dict:
        return self._after_day_event(day.resolve_morning_shot(self.state, shooter_id, target_id))

    def resolve_live_expiration(self) -> list[dict]:
        deaths = day.resolve_live_expiration(self.state)
        if deaths:
            self.emit({"type": "day.live_expired", "data": {"deaths": deaths}})
            self._check_victory()
        return deaths

    def moderator_eliminate(self, player_id: int) -> dict:
        return self._after_day_event(day.moderator_eliminate(self.state, player_id))

    # --- 炸弹 ---

    def has_bomb_to_resolve(self) -> bool:
        return day.has_bomb_to_resolve(self.state)

    def start_bomb_siesta(self) -> bool:
        return day.start_bomb_siesta(self.state)

    def is_bodyguard_alive_for_bomb(self) -> bool:
        return day.is_bodyguard_alive_for_bomb(self.state)

    def bomb_guardian_guess(self, guess: int) -> dict:
        return self._after_day_event(day.bomb_guardian_guess(self.state, guess))

    def bomb_guardian_skip(self) -> bool:
        return day.bomb_guardian_skip(self.state)

    def bomb_target_guess(self, guess: int) -> dict:
        return self._after_day_event(day.bomb_target_guess(self.state, guess))

    # --- 共济会 ---

    def has_framason_contamination(self) -> bool:
        return day.has_framason_contamination(self.state)

    def resolve_framason_contamination(self) -> dict:
        result = day.resolve_framason_contamination(self.state)
        if result["dead_ids"]:
            self.emit({"type": "day.framason_contaminated", "data": result})
            self._check_victory()
        return result

    def get_framason_alliance_names(self) -> list[str]:
        return day.get_framason_alliance_names(self.state)

    # --- 主持人 ---

    def lock_jack_curse(self) -> bool:
        """杰克身份公开时由主持人锁定诅咒；杰克不在场或已锁定返回 False"""
        jack = self.state.get_alive_player_by_role(RoleId.JACK)
        if jack is None or jack.curse.is_locked:
            return False
        jack.curse.lock()
        self.state.add_history("telesm_locked", f"🔪 {jack.name} 的身份已公开，诅咒被锁定。")
        self.emit({"type": "game.curse_locked", "data": {"player_id": jack.player_id}})
        return True

    def add_player_note(self, player_id: int, text: str) -> bool:
        player = self.state.get_player(player_id)
        if player is None or not text or not text.strip():
            return False
        player.add_note(text.strip())
        return True

    def _after_day_event(self, result: dict) -> dict:
        if result.get("success"):
            self.emit({"type": "day.event", "data": result})
            self._check_victory()
        return result

    # ========== 查询 ==========

    def get_player(self, player_id: int) -> Optional[Player]:
        return self.state.get_player(player_id)

    def get_alive_players(self) -> list[Player]:
        return self.state.get_alive_players()

    def get_dead_players(self) -> list[Player]:
        return self.state.get_dead_players()

    def get_revivable_players(self) -> list[Player]:
        return self.state.get_revivable_players()

    def get_pending_kill_targets(self) -> list[int]:
        return self.state.get_pending_kill_targets()

    def get_team_counts(self) -> dict[str, int]:
        return self.state.get_team_counts()

    def get_valid_targets(self, mode: GodfatherMode | str | None = None) -> list[Player]:
        step = self.get_current_night_step()
        if step is None:
            return []
        return get_valid_targets(self.state, step, GodfatherMode(mode) if mode else None)

    def get_history_for_round(self, round_: int) -> list:
        return self.state.get_history_for_round(round_)

    def check_win_condition(self) -> Optional[Team]:
        return self._check_victory()

    def _check_victory(self) -> Optional[Team]:
        if self.state.phase in (GamePhase.SETUP, GamePhase.ROLE_REVEAL):
            return None
        already_ended = self.state.winner is not None
        winner = check_victory(self.state)
        if winner is not None and not already_ended:
            self.emit({"type": "game.end", "data": {
                "winner": winner.value,
                "round": self.state.round,
            }})
        return winner

    # ========== 序列化 ==========

    def to_json(self) -> dict:
        return self.state.to_json()

    @classmethod
    def from_json(cls, data: dict, event_callback: EventCallback | None = None) -> GameEngine:
        return cls(GameState.from_json(data), event_callback)

    def save(self) -> None:
        self.state.save()

    def reset(self) -> None:
        self.state.reset()
        self.emit({"type": "game.reset", "data": {"game_id": self.state.game_id}})
