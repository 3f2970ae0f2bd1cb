"""
游戏状态测试 — 开局校验、序列化往返、旧存档兼容、持久化、重置。
"""

import os
import sys
import tempfile
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

_temp_dir = tempfile.mkdtemp(prefix="mafia_state_")


def _mock_settings():
    from config import Settings
    return Settings(game_data_dir=_temp_dir)


with patch("config.get_settings", _mock_settings):
    from game.engine import GameEngine
    from game.state import GameState
    from models.game_models import (
        BombPhase, BulletType, DeathCause, GamePhase, GodfatherMode, RoleId, ZodiacFrequency,
    )


def make_state(game_id: str = "state_test") -> GameState:
    with patch("game.state.get_settings", _mock_settings):
        return GameState.create(game_id)


def make_engine(roles: list[RoleId], game_id: str) -> GameEngine:
    engine = GameEngine(make_state(game_id))
    counts: dict[str, int] = {}
    for idx, role in enumerate(roles):
        engine.add_player(f"玩家{idx + 1}")
        counts[role.value] = counts.get(role.value, 0) + 1
    engine.set_selected_roles(counts)
    with patch("game.state.random.shuffle", lambda pool: None):
        errors = engine.assign_roles()
    assert not errors, errors
    return engine


# ========== 开局 ==========

def test_validate_setup_errors():
    state = make_state("validate")
    for name in ("甲", "乙", "丙"):
        state.add_player(name)
    state.set_selected_roles({"simpleCitizen": 2, "drWatson": 1})

    errors = state.validate_setup()

    assert any("至少需要 4 名玩家" in e for e in errors)
    assert any("黑手党" in e for e in errors)
    print("  ✅ 开局校验")


def test_validate_role_count_mismatch():
    state = make_state("mismatch")
    for idx in range(4):
        state.add_player(f"玩家{idx + 1}")
    state.set_selected_roles({"godfather": 1, "simpleCitizen": 2})
    assert any("不一致" in e for e in state.validate_setup())

    state.set_selected_roles({"godfather": 1, "simpleCitizen": 3})
    assert state.validate_setup() == []
    print("  ✅ 角色数量校验")


def test_add_player_rejects_blank_name():
    state = make_state("names")
    assert state.add_player("   ") is None
    assert state.add_player(" 小明 ").name == "小明"
    assert state.add_player("小红").player_id == 2
    print("  ✅ 玩家名字")


def test_assign_roles_randomly_uses_whole_pool():
    state = make_state("assign")
    for idx in range(6):
        state.add_player(f"玩家{idx + 1}")
    state.set_selected_roles({"godfather": 1, "simpleMafia": 1, "gunner": 1,
                              "freemason": 1, "simpleCitizen": 2})
    state.assign_roles_randomly()

    assigned = sorted(p.role_id.value for p in state.players)
    assert assigned == sorted(["godfather", "simpleMafia", "gunner", "freemason",
                               "simpleCitizen", "simpleCitizen"])
    godfather = state.get_player_by_role(RoleId.GODFATHER)
    assert godfather.shield.is_active, "教父开局带护盾"
    assert state.framason.leader_id == state.get_player_by_role(RoleId.FREEMASON).player_id
    assert state.bullet_manager.has_bullets
    assert state.phase == GamePhase.ROLE_REVEAL
    print("  ✅ 随机分配角色")


def test_assign_roles_only_in_setup():
    """角色分配只能进行一次，已消耗的护盾不会因重新分配而恢复"""
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "assign_twice")
    godfather = engine.state.get_player_by_role(RoleId.GODFATHER)
    assert godfather.shield.absorb(DeathCause.MAFIA)

    errors = engine.assign_roles()

    assert errors and "开局阶段" in errors[0]
    assert not godfather.shield.is_active
    assert engine.state.phase == GamePhase.ROLE_REVEAL
    print("  ✅ 只能在开局阶段分配角色")


# ========== 序列化 ==========

def test_json_round_trip():
    roles = [RoleId.GODFATHER, RoleId.BOMBER, RoleId.JACK, RoleId.GUNNER,
             RoleId.FREEMASON, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "round_trip")
    state = engine.state
    engine.start_night()
    state.get_player(3).curse.place(6)
    state.bomb.plant(7, 2)
    state.framason.recruit(6, RoleId.SIMPLE_CITIZEN, state.team_of(state.get_player(6)))
    state.bullet_manager.give_bullet(7, BulletType.LIVE, 1)
    state.get_player(2).kill(1, DeathCause.MAFIA)
    state.get_player(1).add_note("看起来很可疑")
    engine.record_night_action(6, {"mode": "salakhi", "guessed_role_id": "simpleCitizen"})
    state.votes[1] = 6

    data = state.to_json()
    restored = GameState.from_json(data)

    assert restored.to_json() == data, "往返序列化后应完全一致"
    assert restored.bomb.is_used and restored.bomb.phase == BombPhase.PLANTED
    assert restored.get_player(3).curse.target_id == 6
    assert restored.night_actions["godfather"].mode == GodfatherMode.SALAKHI
    assert restored.votes == {1: 6}
    assert restored.next_player_id == 8
    print("  ✅ 序列化往返")


def test_legacy_snapshot_aliases():
    """旧存档字段名仍能读入"""
    legacy = {
        "gameId": "legacy",
        "round": 3,
        "phase": "day",
        "players": [
            {"id": 1, "name": "甲", "roleId": "sorcerer", "isAlive": True,
             "telesm": {"targetId": None}},
            {"id": 2, "name": "乙", "roleId": "jack", "isAlive": True,
             "telesm": {"targetId": 3, "locked": True}},
            {"id": 3, "name": "丙", "roleId": "simpleCitizen", "isAlive": False,
             "deathRound": 2, "deathCause": "jack"},
            {"id": 4, "name": "丁", "roleId": "gunner", "isAlive": True},
        ],
        "selectedRoles": {"sorcerer": 1, "jack": 1, "simpleCitizen": 1, "gunner": 1},
        "nightActions": {},
        "tofangdar": {
            "mashghiMax": 3, "jangiMax": 1, "mashghiRemaining": 2, "jangiRemaining": 1,
            "activeBullets": [{"holderId": 1, "type": "mashghi", "givenRound": 2}],
            "active": True,
        },
        "bomb": {"targetId": 4, "password": 2, "used": True, "phase": "siesta"},
        "_lastDrWatsonTarget": 4,
        "_lastJadoogarTarget": 2,
        "zodiacFrequency": "odd",
        "dayTimerDuration": 240,
    }

    state = GameState.from_json(legacy)

    assert state.game_id == "legacy"
    assert state.get_player(1).role_id == RoleId.JADOOGAR
    assert state.selected_roles[RoleId.JADOOGAR] == 1
    assert state.get_player(2).curse.target_id == 3
    assert state.get_player(2).curse.is_locked
    assert state.get_player(3).death_cause == DeathCause.CURSE
    manager = state.bullet_manager
    assert manager.blank_max == 3 and manager.live_max == 1
    assert manager.get_player_bullet(1).type == BulletType.BLANK
    assert state.bomb.phase == BombPhase.DETERMINATION
    assert state.last_watson_target == 4
    assert state.last_blocked_id == 2
    assert state.config.zodiac_frequency == ZodiacFrequency.ODD
    assert state.config.day_timer_duration == 240
    assert state.next_player_id == 5
    print("  ✅ 旧存档兼容")


def test_legacy_bomb_phases():
    for legacy_phase, phase in (("exploded", BombPhase.DETONATED),
                                ("guardian_died", BombPhase.PROTECTOR_DIED),
                                (None, BombPhase.NONE)):
        state = GameState.from_json({"bomb": {"phase": legacy_phase}})
        assert state.bomb.phase == phase, f"{legacy_phase} 应映射为 {phase}"
    print("  ✅ 旧炸弹阶段")


def test_save_and_load():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "persist")
    engine.start_night()

    with patch("game.state.get_settings", _mock_settings):
        engine.save()
        loaded = GameState.load("persist")
        missing = GameState.load("no_such_game")

    assert loaded is not None
    assert loaded.to_json() == engine.to_json()
    assert missing is None
    assert os.path.exists(os.path.join(_temp_dir, "game_persist", "engine_state.json"))
    print("  ✅ 保存 / 读取")


def test_reset_restarts_ids():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "reset")
    engine.start_night()
    engine.state.config.sniper_max_shots = 5

    engine.reset()

    assert engine.state.players == []
    assert engine.state.round == 0
    assert engine.state.phase == GamePhase.SETUP
    assert engine.state.game_id == "reset"
    assert engine.state.config.sniper_max_shots == 5, "规则参数保留"
    assert engine.add_player("新玩家").player_id == 1
    print("  ✅ 重置")


def test_history_per_round():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "history")
    engine.start_night()
    engine.resolve_night()
    engine.start_day()
    engine.start_night()

    round_one = engine.get_history_for_round(1)
    round_two = engine.get_history_for_round(2)
    assert round_one and all(h.round == 1 for h in round_one)
    assert [h.type for h in round_two] == ["phase"]
    print("  ✅ 按回合查询历史")


def main():
    print("=" * 60)
    print("游戏状态测试")
    print("=" * 60)
    tests = [v for k, v in sorted(globals().items()) if k.startswith("test_")]
    passed = failed = 0
    for test_func in tests:
        try:
            test_func()
            passed += 1
        except AssertionError as e:
            print(f"  ❌ {test_func.__name__}: {e}")
            failed += 1
    print(f"\n通过 {passed}/{passed + failed}")
    return failed == 0


if __name__ == "__main__":
    sys.exit(0 if main() else 1)
