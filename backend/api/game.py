"""主持人操作 API"""

import logging
import os
import uuid
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, field_validator

from config import get_settings
from game.engine import GameEngine
from game.state import GameState
from models.game_models import BulletType, GodfatherMode, RoleId

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/games", tags=["游戏"])

# 内存中的游戏实例
_active_engines: dict[str, GameEngine] = {}

# 每局的事件缓冲（界面轮询 / 断线重放）
_event_buffers: dict[str, list[dict]] = {}

_PHASE_TRANSITIONS = {
    "blind_day": GameEngine.start_blind_day,
    "blind_night": GameEngine.start_blind_night,
    "night": GameEngine.start_night,
    "day": GameEngine.start_day,
}


def make_event_callback(game_id: str):
    """创建事件回调：写入该局的事件缓冲"""
    buffer = _event_buffers.setdefault(game_id, [])

    def callback(event: dict) -> None:
        buffer.append(event)
        logger.debug(f"game={game_id} 事件: {event['type']}")

    return callback


def get_engine(game_id: str) -> GameEngine:
    """获取游戏引擎；内存中没有时尝试从存档恢复"""
    engine = _active_engines.get(game_id)
    if engine:
        return engine
    state = GameState.load(game_id)
    if not state:
        raise HTTPException(status_code=404, detail="游戏不存在")
    engine = GameEngine(state, make_event_callback(game_id))
    _active_engines[game_id] = engine
    logger.info(f"从存档恢复游戏 {game_id}，第{state.round}回合")
    return engine


def _players_payload(players) -> list[dict]:
    return [p.to_dict() for p in players]


# ========== 请求模型 ==========

class PlayerCreateRequest(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("玩家名字不能为空")
        return v.strip()


class RolesRequest(BaseModel):
    roles: dict[str, int]

    @field_validator("roles")
    @classmethod
    def validate_roles(cls, v: dict[str, int]) -> dict[str, int]:
        valid = {r.value for r in RoleId}
        unknown = set(v) - valid
        if unknown:
            raise ValueError(f"未知角色: {sorted(unknown)}")
        if any(count < 0 for count in v.values()):
            raise ValueError("角色数量不能为负数")
        return v


class NightActionRequest(BaseModel):
    target_id: Optional[int] = None
    extra: Optional[dict] = None


class VoteRequest(BaseModel):
    voter_id: int
    target_id: int


class TargetRequest(BaseModel):
    target_id: int


class PlayerRequest(BaseModel):
    player_id: int


class BulletRequest(BaseModel):
    holder_id: int
    type: BulletType


class MorningShotRequest(BaseModel):
    shooter_id: int
    target_id: int


class GuessRequest(BaseModel):
    guess: int

    @field_validator("guess")
    @classmethod
    def validate_guess(cls, v: int) -> int:
        if v not in (1, 2, 3, 4):
            raise ValueError("密码只能是 1~4")
        return v


class NoteRequest(BaseModel):
    text: str

    @field_validator("text")
    @classmethod
    def validate_text(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("笔记内容不能为空")
        return v.strip()


class GameCreateResponse(BaseModel):
    game_id: str


# ========== 游戏 ==========

@router.post("", response_model=GameCreateResponse, status_code=201)
async def create_game():
    """创建一局空白游戏"""
    settings = get_settings()
    for _ in range(10):
        game_id = str(uuid.uuid4())[:8]
        game_dir = os.path.join(settings.game_data_dir, f"game_{game_id}")
        if game_id not in _active_engines and not os.path.exists(game_dir):
            break
    else:
        game_id = str(uuid.uuid4())  # 兜底使用完整 UUID

    engine = GameEngine.create(game_id, make_event_callback(game_id))
    engine.save()
    _active_engines[game_id] = engine
    return GameCreateResponse(game_id=game_id)


@router.get("/{game_id}/state")
async def get_game_state(game_id: str):
    """主持人视角的完整状态"""
    return get_engine(game_id).to_json()


@router.get("/{game_id}/events")
async def get_game_events(game_id: str, since: int = 0):
    get_engine(game_id)
    events = _event_buffers.get(game_id, [])
    return {"events": events[since:], "next": len(events)}


@router.get("/{game_id}/history")
async def get_game_history(game_id: str, round: Optional[int] = None):
    engine = get_engine(game_id)
    entries = engine.state.history if round is None else engine.get_history_for_round(round)
    return {"history": [h.to_dict() for h in entries]}


@router.post("/{game_id}/reset")
async def reset_game(game_id: str):
    engine = get_engine(game_id)
    engine.reset()
    engine.save()
    return {"ok": True}


# ========== 开局设置 ==========

@router.post("/{game_id}/players", status_code=201)
async def add_player(game_id: str, data: PlayerCreateRequest):
    engine = get_engine(game_id)
    player = engine.add_player(data.name)
    if not player:
        raise HTTPException(status_code=400, detail="玩家名字无效")
    engine.save()
    return player.to_dict()


@router.delete("/{game_id}/players/{player_id}")
async def remove_player(game_id: str, player_id: int):
    engine = get_engine(game_id)
    if not engine.get_player(player_id):
        raise HTTPException(status_code=404, detail="玩家不存在")
    engine.remove_player(player_id)
    engine.save()
    return {"ok": True}


@router.post("/{game_id}/players/{player_id}/notes", status_code=201)
async def add_player_note(game_id: str, player_id: int, data: NoteRequest):
    """主持人私人笔记"""
    engine = get_engine(game_id)
    if not engine.add_player_note(player_id, data.text):
        raise HTTPException(status_code=404, detail="玩家不存在")
    engine.save()
    return {"notes": engine.get_player(player_id).notes}


@router.put("/{game_id}/roles")
async def set_roles(game_id: str, data: RolesRequest):
    engine = get_engine(game_id)
    engine.set_selected_roles(data.roles)
    engine.save()
    return {"errors": engine.validate_setup()}


@router.get("/{game_id}/setup/validate")
async def validate_setup(game_id: str):
    return {"errors": get_engine(game_id).validate_setup()}


@router.post("/{game_id}/assign")
async def assign_roles(game_id: str):
    engine = get_engine(game_id)
    errors = engine.assign_roles()
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    engine.save()
    return {"players": _players_payload(engine.state.players)}


# ========== 阶段 ==========

@router.post("/{game_id}/phase/{phase}")
async def change_phase(game_id: str, phase: str):
    transition = _PHASE_TRANSITIONS.get(phase)
    if transition is None:
        raise HTTPException(status_code=400, detail=f"未知阶段: {phase}")
    engine = get_engine(game_id)
    if engine.state.winner is not None:
        raise HTTPException(status_code=400, detail="游戏已结束")
    transition(engine)
    engine.save()
    return {"phase": engine.state.phase.value, "round": engine.state.round}


# ========== 夜晚 ==========

@router.get("/{game_id}/night/step")
async def get_night_step(game_id: str, mode: Optional[GodfatherMode] = None):
    engine = get_engine(game_id)
    step = engine.get_current_night_step()
    engine.save()
    if step is None:
        return {"step": None, "complete": True, "targets": []}
    return {
        "step": step.to_dict(),
        "complete": False,
        "targets": _players_payload(engine.get_valid_targets(mode)),
    }


@router.post("/{game_id}/night/action")
async def record_night_action(game_id: str, data: NightActionRequest):
    engine = get_engine(game_id)
    if not engine.record_night_action(data.target_id, data.extra):
        raise HTTPException(status_code=400, detail="无法记录行动")
    engine.save()
    return {"complete": engine.is_night_complete()}


@router.post("/{game_id}/night/skip")
async def skip_night_action(game_id: str):
    engine = get_engine(game_id)
    if not engine.skip_night_action():
        raise HTTPException(status_code=400, detail="没有待处理的步骤")
    engine.save()
    return {"complete": engine.is_night_complete()}


@router.post("/{game_id}/night/resolve")
async def resolve_night(game_id: str):
    engine = get_engine(game_id)
    result = engine.resolve_night()
    engine.save()
    return {
        "result": result.to_dict(),
        "winner": engine.state.winner.value if engine.state.winner else None,
    }


# ========== 白天 ==========

@router.post("/{game_id}/votes")
async def cast_vote(game_id: str, data: VoteRequest):
    engine = get_engine(game_id)
    if not engine.cast_vote(data.voter_id, data.target_id):
        raise HTTPException(status_code=400, detail="投票无效")
    engine.save()
    return {"tally": engine.get_vote_tally()}


@router.delete("/{game_id}/votes/{voter_id}")
async def remove_vote(game_id: str, voter_id: int):
    engine = get_engine(game_id)
    engine.remove_vote(voter_id)
    engine.save()
    return {"tally": engine.get_vote_tally()}


@router.get("/{game_id}/votes")
async def get_votes(game_id: str):
    engine = get_engine(game_id)
    return {"tally": engine.get_vote_tally(), "leader": engine.get_vote_leader()}


@router.post("/{game_id}/eliminate")
async def eliminate_by_vote(game_id: str, data: TargetRequest):
    engine = get_engine(game_id)
    result = engine.eliminate_by_vote(data.target_id)
    engine.save()
    return result


@router.post("/{game_id}/moderator-eliminate")
async def moderator_eliminate(game_id: str, data: PlayerRequest):
    engine = get_engine(game_id)
    result = engine.moderator_eliminate(data.player_id)
    engine.save()
    return result


@router.post("/{game_id}/bullets")
async def give_bullet(game_id: str, data: BulletRequest):
    engine = get_engine(game_id)
    if not engine.gunner_give_bullet(data.holder_id, data.type):
        raise HTTPException(status_code=400, detail="无法发放子弹")
    engine.save()
    return engine.state.bullet_manager.to_dict()


@router.post("/{game_id}/morning-shot")
async def morning_shot(game_id: str, data: MorningShotRequest):
    engine = get_engine(game_id)
    result = engine.resolve_morning_shot(data.shooter_id, data.target_id)
    engine.save()
    return result


@router.post("/{game_id}/live-expiration")
async def live_expiration(game_id: str):
    engine = get_engine(game_id)
    deaths = engine.resolve_live_expiration()
    engine.save()
    return {"deaths": deaths}


# ========== 炸弹 ==========

@router.get("/{game_id}/bomb")
async def get_bomb(game_id: str):
    engine = get_engine(game_id)
    return {
        "pending": engine.has_bomb_to_resolve(),
        "bodyguard_can_guess": engine.is_bodyguard_alive_for_bomb(),
        "phase": engine.state.bomb.phase.value,
        "target_id": engine.state.bomb.target_id,
    }


@router.post("/{game_id}/bomb/siesta")
async def start_bomb_siesta(game_id: str):
    engine = get_engine(game_id)
    started = engine.start_bomb_siesta()
    engine.save()
    return {"started": started}


@router.post("/{game_id}/bomb/guardian-guess")
async def bomb_guardian_guess(game_id: str, data: GuessRequest):
    engine = get_engine(game_id)
    result = engine.bomb_guardian_guess(data.guess)
    engine.save()
    return result


@router.post("/{game_id}/bomb/guardian-skip")
async def bomb_guardian_skip(game_id: str):
    engine = get_engine(game_id)
    skipped = engine.bomb_guardian_skip()
    engine.save()
    return {"skipped": skipped}


@router.post("/{game_id}/bomb/target-guess")
async def bomb_target_guess(game_id: str, data: GuessRequest):
    engine = get_engine(game_id)
    result = engine.bomb_target_guess(data.guess)
    engine.save()
    return result


# ========== 共济会 ==========

@router.get("/{game_id}/framason")
async def get_framason(game_id: str):
    engine = get_engine(game_id)
    return {
        "contaminated": engine.has_framason_contamination(),
        "alliance": engine.get_framason_alliance_names(),
    }


@router.post("/{game_id}/framason/resolve")
async def resolve_framason(game_id: str):
    engine = get_engine(game_id)
    result = engine.resolve_framason_contamination()
    engine.save()
    return result


# ========== 杰克 ==========

@router.post("/{game_id}/jack/lock-curse")
async def lock_jack_curse(game_id: str):
    engine = get_engine(game_id)
    if not engine.lock_jack_curse():
        raise HTTPException(status_code=400, detail="没有可以锁定的诅咒")
    engine.save()
    return {"ok": True}


# ========== 查询 ==========

@router.get("/{game_id}/players")
async def list_players(game_id: str, status: Optional[str] = None):
    engine = get_engine(game_id)
    if status == "alive":
        players = engine.get_alive_players()
    elif status == "dead":
        players = engine.get_dead_players()
    elif status == "revivable":
        players = engine.get_revivable_players()
    else:
        players = engine.state.players
    return {"players": _players_payload(players)}


@router.get("/{game_id}/summary")
async def get_summary(game_id: str):
    engine = get_engine(game_id)
    winner = engine.check_win_condition()
    engine.save()
    return {
        "round": engine.state.round,
        "phase": engine.state.phase.value,
        "team_counts": engine.get_team_counts(),
        "pending_kills": engine.get_pending_kill_targets(),
        "winner": winner.value if winner else None,
    }
