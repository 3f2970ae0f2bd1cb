"""游戏状态管理"""

from __future__ import annotations

import json
import logging
import os
import random
import time
from dataclasses import dataclass, field
from typing import Optional

from config import get_settings
from models.game_models import (
    BulletAssignment, BulletType, GameConfig, GamePhase, GodfatherMode,
    HistoryEntry, NightActionRecord, NightActionType, NightStep, RoleId, Team,
    ZodiacFrequency, NON_REVIVABLE_CAUSES,
)
from models.player import Player
from models.snapshot import GameSnapshot
from roles.registry import get_role, get_team
from systems.bomb import Bomb
from systems.bullets import BulletManager
from systems.framason import Framason

logger = logging.getLogger(__name__)


@dataclass
class GameState:
    """游戏完整状态（独占所有玩家与能力子模型）"""
    game_id: str = ""
    config: GameConfig = field(default_factory=GameConfig)

    players: list[Player] = field(default_factory=list)
    round: int = 0
    phase: GamePhase = GamePhase.SETUP
    winner: Optional[Team] = None
    history: list[HistoryEntry] = field(default_factory=list)
    selected_roles: dict[RoleId, int] = field(default_factory=dict)

    # 夜晚
    night_steps: list[NightStep] = field(default_factory=list)
    current_night_step: int = 0
    night_actions: dict[str, NightActionRecord] = field(default_factory=dict)
    night_resolved: bool = False  # 本晚是否已结算（每晚只结算一次）

    # 白天投票 voter_id -> target_id
    votes: dict[int, int] = field(default_factory=dict)

    next_player_id: int = 1

    # 一次性 / 计数能力
    constantine_used: bool = False
    kane_used: bool = False
    kane_pending_death: Optional[int] = None
    sniper_shots_used: int = 0
    watson_self_heals: int = 0
    lecter_self_heals: int = 0

    # 连续两晚限制
    last_watson_target: Optional[int] = None
    last_lecter_target: Optional[int] = None
    last_blocked_id: Optional[int] = None

    bomb: Bomb = field(default_factory=Bomb)
    framason: Framason = field(default_factory=Framason)
    bullet_manager: BulletManager = field(default_factory=BulletManager)

    @classmethod
    def create(cls, game_id: str) -> GameState:
        """按当前配置创建空白游戏"""
        return cls(game_id=game_id, config=GameConfig.from_settings(get_settings()))

    def reset(self) -> None:
        """重置为全新游戏（玩家编号从 1 重新开始）"""
        fresh = GameState(game_id=self.game_id, config=self.config)
        self.__dict__.update(fresh.__dict__)

    # --- 开局设置 ---

    def add_player(self, name: str) -> Optional[Player]:
        if not name or not name.strip():
            return None
        player = Player(player_id=self.next_player_id, name=name.strip())
        self.next_player_id += 1
        self.players.append(player)
        return player

    def remove_player(self, player_id: int) -> None:
        self.players = [p for p in self.players if p.player_id != player_id]

    def set_selected_roles(self, roles: dict) -> None:
        self.selected_roles = {RoleId(k): int(v) for k, v in roles.items() if int(v) > 0}

    def get_total_role_count(self) -> int:
        return sum(self.selected_roles.values())

    def validate_setup(self) -> list[str]:
        """校验开局设置，返回错误信息列表（为空表示可以开始）"""
        errors = []
        if len(self.players) < self.config.min_players:
            errors.append(f"至少需要 {self.config.min_players} 名玩家。")

        total = self.get_total_role_count()
        if total != len(self.players):
            errors.append(f"角色数量（{total}）与玩家数量（{len(self.players)}）不一致。")

        for role_id, count in self.selected_roles.items():
            role = get_role(role_id)
            if role is None:
                errors.append(f"未知角色：{role_id}")
                continue
            limit = 1 if role.unique else role.max_count
            if count > limit:
                errors.append(f"{role.name} 最多只能选 {limit} 个。")

        mafia_count = sum(
            c for r, c in self.selected_roles.items() if get_team(r) == Team.MAFIA
        )
        if mafia_count == 0:
            errors.append("至少需要选择一个黑手党角色。")
        return errors

    def assign_roles_randomly(self) -> None:
        """展开角色池并随机洗牌（Fisher-Yates），按玩家顺序分配"""
        pool: list[RoleId] = []
        for role_id, count in self.selected_roles.items():
            pool.extend([role_id] * count)
        random.shuffle(pool)

        for player, role_id in zip(self.players, pool):
            player.role_id = role_id
            role = get_role(role_id)
            if role and role.has_shield:
                player.shield.activate()

        freemason = self.get_player_by_role(RoleId.FREEMASON)
        if freemason:
            self.framason.init(freemason.player_id, self.config.framason_max_members)

        if self.get_player_by_role(RoleId.GUNNER):
            self.bullet_manager.init(self.config.blank_bullets, self.config.live_bullets)

        self.phase = GamePhase.ROLE_REVEAL
        logger.info(f"游戏 {self.game_id} 分配角色完成，共 {len(pool)} 个角色")

    # --- 查询 ---

    def get_player(self, player_id: Optional[int]) -> Optional[Player]:
        if player_id is None:
            return None
        for p in self.players:
            if p.player_id == player_id:
                return p
        return None

    def get_alive_players(self) -> list[Player]:
        return [p for p in self.players if p.is_alive]

    def get_dead_players(self) -> list[Player]:
        return [p for p in self.players if not p.is_alive]

    def is_revivable(self, player: Player) -> bool:
        return (
            not player.is_alive
            and player.death_round is not None
            and player.death_round < self.round
            and player.death_cause not in NON_REVIVABLE_CAUSES
        )

    def get_revivable_players(self) -> list[Player]:
        return [p for p in self.players if self.is_revivable(p)]

    def team_of(self, player: Optional[Player]) -> Optional[Team]:
        return get_team(player.role_id) if player else None

    def get_team_players(self, team: Team) -> list[Player]:
        return [p for p in self.players if p.is_alive and self.team_of(p) == team]

    def get_team_counts(self) -> dict[str, int]:
        alive = self.get_alive_players()
        counts = {team.value: 0 for team in Team}
        for p in alive:
            team = self.team_of(p)
            if team:
                counts[team.value] += 1
        counts["total"] = len(alive)
        return counts

    def get_player_by_role(self, role_id: RoleId) -> Optional[Player]:
        """获取指定角色的玩家（单人角色，不论死活）"""
        for p in self.players:
            if p.role_id == role_id:
                return p
        return None

    def get_alive_player_by_role(self, role_id: RoleId) -> Optional[Player]:
        for p in self.players:
            if p.is_alive and p.role_id == role_id:
                return p
        return None

    def is_vote_immune(self, player_id: int) -> bool:
        player = self.get_player(player_id)
        role = get_role(player.role_id) if player else None
        return bool(role and role.vote_immune)

    def can_zodiac_shoot(self) -> bool:
        freq = self.config.zodiac_frequency
        if freq == ZodiacFrequency.ODD:
            return self.round % 2 == 1
        if freq == ZodiacFrequency.EVEN:
            return self.round % 2 == 0
        return True

    def can_negotiate(self) -> bool:
        """教父本人存活且存活黑手党人数不超过阈值"""
        if self.get_alive_player_by_role(RoleId.GODFATHER) is None:
            return False
        return len(self.get_team_players(Team.MAFIA)) <= self.config.negotiation_threshold

    def can_dr_watson_heal(self, target_id: int) -> bool:
        return self.last_watson_target != target_id

    def can_dr_lecter_heal(self, target_id: int) -> bool:
        return self.last_lecter_target != target_id

    def can_block(self, target_id: int) -> bool:
        return self.last_blocked_id != target_id

    @property
    def sniper_shots_remaining(self) -> int:
        return max(0, self.config.sniper_max_shots - self.sniper_shots_used)

    def get_pending_kill_targets(self) -> list[int]:
        """当晚已记录的致命行动目标（主持人面板提示用）"""
        lethal = (NightActionType.KILL, NightActionType.SOLO_KILL, NightActionType.SNIPE)
        targets = []
        for record in self.night_actions.values():
            if record.action_type not in lethal or record.target_id is None:
                continue
            if record.action_type == NightActionType.KILL and record.mode == GodfatherMode.NEGOTIATE:
                continue
            if record.target_id not in targets:
                targets.append(record.target_id)
        return targets

    # --- 历史 ---

    def add_history(self, type_: str, text: str) -> HistoryEntry:
        entry = HistoryEntry(
            round=self.round,
            phase=self.phase,
            type=type_,
            text=text,
            timestamp=int(time.time() * 1000),
        )
        self.history.append(entry)
        return entry

    def get_history_for_round(self, round_: int) -> list[HistoryEntry]:
        return [h for h in self.history if h.round == round_]

    # --- 序列化 ---

    def to_json(self) -> dict:
        return {
            "game_id": self.game_id,
            "round": self.round,
            "phase": self.phase.value,
            "winner": self.winner.value if self.winner else None,
            "players": [p.to_dict() for p in self.players],
            "history": [h.to_dict() for h in self.history],
            "selected_roles": {r.value: c for r, c in self.selected_roles.items()},
            "night_steps": [s.to_dict() for s in self.night_steps],
            "current_night_step": self.current_night_step,
            "night_actions": {k: a.to_dict() for k, a in self.night_actions.items()},
            "night_resolved": self.night_resolved,
            "votes": {str(k): v for k, v in self.votes.items()},
            "next_player_id": self.next_player_id,
            "constantine_used": self.constantine_used,
            "kane_used": self.kane_used,
            "kane_pending_death": self.kane_pending_death,
            "sniper_shots_used": self.sniper_shots_used,
            "watson_self_heals": self.watson_self_heals,
            "lecter_self_heals": self.lecter_self_heals,
            "last_watson_target": self.last_watson_target,
            "last_lecter_target": self.last_lecter_target,
            "last_blocked_id": self.last_blocked_id,
            "bomb": self.bomb.to_dict(),
            "framason": self.framason.to_dict(),
            "bullet_manager": self.bullet_manager.to_dict(),
            "config": self.config.to_dict(),
        }

    @classmethod
    def from_json(cls, data: dict) -> GameState:
        snap = GameSnapshot.model_validate(data).model_dump()

        cfg = snap["config"]
        state = cls(
            game_id=snap["game_id"],
            config=GameConfig(**{**cfg, "zodiac_frequency": ZodiacFrequency(cfg["zodiac_frequency"])}),
        )
        state.players = [Player.from_dict(p) for p in snap["players"]]
        state.round = snap["round"]
        state.phase = GamePhase(snap["phase"])
        state.winner = Team(snap["winner"]) if snap["winner"] else None
        state.history = [
            HistoryEntry(
                round=h["round"], phase=GamePhase(h["phase"]), type=h["type"],
                text=h["text"], timestamp=h["timestamp"],
            )
            for h in snap["history"]
        ]
        state.selected_roles = {RoleId(k): v for k, v in snap["selected_roles"].items()}
        state.night_steps = [
            NightStep(
                role_id=s["role_id"], action_type=NightActionType(s["action_type"]),
                actors=s["actors"], target_id=s["target_id"], completed=s["completed"],
            )
            for s in snap["night_steps"]
        ]
        state.current_night_step = snap["current_night_step"]
        state.night_actions = {
            role_id: NightActionRecord(
                actor_ids=a["actor_ids"],
                action_type=NightActionType(a["action_type"]),
                target_id=a["target_id"],
                mode=GodfatherMode(a["mode"]) if a["mode"] else None,
                guessed_role_id=RoleId(a["guessed_role_id"]) if a["guessed_role_id"] else None,
                password=a["password"],
                assignments=[
                    BulletAssignment(holder_id=b["holder_id"], type=BulletType(b["type"]))
                    for b in a["assignments"]
                ],
            )
            for role_id, a in snap["night_actions"].items()
        }
        state.night_resolved = snap["night_resolved"]
        state.votes = dict(snap["votes"])

        max_id = max((p.player_id for p in state.players), default=0)
        state.next_player_id = max(snap["next_player_id"] or 0, max_id + 1)

        state.constantine_used = snap["constantine_used"]
        state.kane_used = snap["kane_used"]
        state.kane_pending_death = snap["kane_pending_death"]
        state.sniper_shots_used = snap["sniper_shots_used"]
        state.watson_self_heals = snap["watson_self_heals"]
        state.lecter_self_heals = snap["lecter_self_heals"]
        state.last_watson_target = snap["last_watson_target"]
        state.last_lecter_target = snap["last_lecter_target"]
        state.last_blocked_id = snap["last_blocked_id"]

        state.bomb = Bomb.from_dict(snap["bomb"])
        state.framason = Framason.from_dict(snap["framason"])
        state.bullet_manager = BulletManager.from_dict(snap["bullet_manager"])
        return state

    # --- 持久化 ---

    def _get_state_path(self) -> str:
        settings = get_settings()
        game_dir = os.path.join(settings.game_data_dir, f"game_{self.game_id}")
        os.makedirs(game_dir, exist_ok=True)
        return os.path.join(game_dir, "engine_state.json")

    def save(self) -> None:
        """保存游戏状态到 JSON 文件"""
        path = self._get_state_path()
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_json(), f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, game_id: str) -> Optional[GameState]:
        """从 JSON 文件加载游戏状态"""
        settings = get_settings()
        path = os.path.join(settings.game_data_dir, f"game_{game_id}", "engine_state.json")
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        state = cls.from_json(data)
        if not state.game_id:
            state.game_id = game_id
        return state
