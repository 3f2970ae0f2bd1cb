"""
白天结算测试 — 投票放逐、早晨开枪、实弹过期、炸弹判定、共济会污染、主持人淘汰。
"""

import os
import sys
import tempfile
from unittest.mock import patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

_temp_dir = tempfile.mkdtemp(prefix="mafia_day_")


def _mock_settings():
    from config import Settings
    return Settings(game_data_dir=_temp_dir)


with patch("config.get_settings", _mock_settings):
    from game.engine import GameEngine
    from models.game_models import (
        BombPhase, BulletType, DeathCause, GamePhase, NightActionRecord, RoleId, Team,
    )
    from roles.registry import get_role


def make_engine(roles: list[RoleId], game_id: str = "day_test") -> GameEngine:
    """按给定顺序分配角色（玩家 ID 与列表顺序一致），结算一个空的第一夜后进入白天"""
    with patch("game.state.get_settings", _mock_settings):
        engine = GameEngine.create(game_id)
    counts: dict[str, int] = {}
    for idx, role in enumerate(roles):
        engine.add_player(f"玩家{idx + 1}")
        counts[role.value] = counts.get(role.value, 0) + 1
    engine.set_selected_roles(counts)
    with patch("game.state.random.shuffle", lambda pool: None):
        errors = engine.assign_roles()
    assert not errors, errors
    engine.start_night()
    return engine


def act(engine: GameEngine, role: RoleId, target_id, **extra) -> None:
    actor = engine.state.get_player_by_role(role)
    engine.state.night_actions[role.value] = NightActionRecord.from_extra(
        [actor.player_id], get_role(role).night_action, target_id, extra,
    )


def night_then_day(engine: GameEngine) -> None:
    engine.resolve_night()
    engine.start_day()


# ========== 投票 ==========

def test_vote_tally_kane_double():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.KANE,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "tally")
    night_then_day(engine)

    assert engine.cast_vote(3, 1)   # 凯恩两票
    assert engine.cast_vote(4, 2)
    assert engine.cast_vote(5, 2)
    assert engine.get_vote_tally() == {1: 2, 2: 2}
    assert engine.get_vote_leader() is None, "平票无人出局"

    engine.remove_vote(5)
    assert engine.get_vote_tally() == {1: 2, 2: 1}
    assert engine.get_vote_leader() == 1
    print("  ✅ 凯恩两票")


def test_vote_rejects_dead_players():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "vote_dead")
    act(engine, RoleId.GODFATHER, 3)
    night_then_day(engine)
    assert engine.cast_vote(3, 1) is False, "死人不能投票"
    assert engine.cast_vote(4, 3) is False, "不能投死人"
    print("  ✅ 死亡玩家不参与投票")


def test_eliminate_by_vote():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "vote_out")
    night_then_day(engine)
    engine.cast_vote(3, 2)

    result = engine.eliminate_by_vote(2)

    assert result["success"] and result["vote_immune"] is False
    assert engine.get_player(2).death_cause == DeathCause.VOTE
    assert engine.state.votes == {}, "放逐后清空投票"
    print("  ✅ 投票放逐")


def test_vote_immune_jack():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.JACK,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "vote_immune")
    night_then_day(engine)

    result = engine.eliminate_by_vote(3)

    assert result["vote_immune"] is True
    assert engine.get_player(3).is_alive, "杰克免疫投票"
    assert any(h.type == "vote_immune" for h in engine.state.history)
    print("  ✅ 杰克免疫投票")


def test_vote_triggers_curse_chain():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.JACK,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "vote_curse")
    act(engine, RoleId.JACK, 4)
    night_then_day(engine)

    result = engine.eliminate_by_vote(4)

    assert result["jack_curse_triggered"] is True
    assert result["jack_id"] == 3
    assert engine.get_player(3).death_cause == DeathCause.CURSE
    print("  ✅ 放逐触发诅咒连锁")


def test_vote_kills_framason_leader():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.FREEMASON,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "vote_leader")
    night_then_day(engine)
    assert engine.state.framason.is_active

    engine.eliminate_by_vote(3)

    assert not engine.state.framason.is_active, "首领死亡后联盟失效"
    assert not engine.state.framason.can_recruit
    print("  ✅ 放逐共济会首领")


def test_vote_win_ends_game():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "vote_win")
    night_then_day(engine)

    engine.eliminate_by_vote(1)

    assert engine.state.winner == Team.CITIZEN
    assert engine.state.phase == GamePhase.ENDED
    assert engine.check_win_condition() == Team.CITIZEN, "重复检查结果不变"
    print("  ✅ 放逐后判定胜负")


# ========== 早晨开枪 ==========

def _gunner_game(game_id: str) -> GameEngine:
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.GUNNER, RoleId.DR_WATSON,
             RoleId.JACK, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    return make_engine(roles, game_id)


def test_morning_shot_live_kills_and_reveals_team():
    engine = _gunner_game("shot_live")
    act(engine, RoleId.GUNNER, None, assignments=[{"holder_id": 6, "type": "live"}])
    night_then_day(engine)

    result = engine.resolve_morning_shot(6, 2)

    assert result == {
        "success": True, "bullet_type": "live", "killed": True, "team": "mafia",
        "jack_curse_triggered": False, "jack_id": None,
    }
    assert engine.get_player(2).death_cause == DeathCause.LIVE_BULLET
    assert engine.state.bullet_manager.get_player_bullet(6) is None, "子弹已用掉"
    print("  ✅ 实弹击杀")


def test_morning_shot_blank_is_harmless():
    engine = _gunner_game("shot_blank")
    act(engine, RoleId.GUNNER, None, assignments=[{"holder_id": 6, "type": "blank"}])
    night_then_day(engine)

    result = engine.resolve_morning_shot(6, 2)

    assert result["success"] and result["killed"] is False
    assert engine.get_player(2).is_alive
    print("  ✅ 空包弹无害")


def test_morning_shot_protections():
    engine = _gunner_game("shot_protected")
    act(engine, RoleId.GUNNER, None, assignments=[
        {"holder_id": 6, "type": "live"},
        {"holder_id": 7, "type": "live"},
    ])
    act(engine, RoleId.DR_WATSON, 8)
    night_then_day(engine)

    healed = engine.resolve_morning_shot(6, 8)
    assert healed["killed"] is False and healed["protected_by"] == "healed"

    immune = engine.resolve_morning_shot(7, 5)
    assert immune["killed"] is False and immune["protected_by"] == "immune"
    assert engine.get_player(5).is_alive
    print("  ✅ 被治疗 / 免疫")


def test_morning_shot_shield_and_block():
    roles = [RoleId.GODFATHER, RoleId.JADOOGAR, RoleId.GUNNER, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "shot_shield")
    act(engine, RoleId.GUNNER, None, assignments=[
        {"holder_id": 4, "type": "live"},
        {"holder_id": 5, "type": "live"},
    ])
    act(engine, RoleId.JADOOGAR, 6)
    night_then_day(engine)

    shielded = engine.resolve_morning_shot(4, 1)
    assert shielded["protected_by"] == "shield"
    assert not engine.get_player(1).shield.is_active, "护盾被消耗"

    blocked = engine.resolve_morning_shot(5, 6)
    assert blocked["protected_by"] == "blocked", "昨晚被封锁的目标不受实弹伤害"
    assert engine.get_player(6).is_alive
    print("  ✅ 护盾 / 封锁")


def test_morning_shot_invalid():
    engine = _gunner_game("shot_invalid")
    act(engine, RoleId.GUNNER, None, assignments=[{"holder_id": 6, "type": "live"}])
    night_then_day(engine)

    assert engine.resolve_morning_shot(7, 2)["reason"] == "no_bullet"
    assert engine.resolve_morning_shot(6, 6)["reason"] == "self_shot", "市民不能对自己开枪"
    assert engine.state.bullet_manager.get_player_bullet(6) is not None, "无效开枪不消耗子弹"
    print("  ✅ 无效开枪")


def test_live_expiration():
    engine = _gunner_game("expire")
    act(engine, RoleId.GUNNER, None, assignments=[
        {"holder_id": 6, "type": "live"},
        {"holder_id": 7, "type": "blank"},
    ])
    night_then_day(engine)

    deaths = engine.resolve_live_expiration()

    assert deaths == [{"holder_id": 6, "holder_name": "玩家6"}]
    assert engine.get_player(6).death_cause == DeathCause.LIVE_EXPLOSION
    assert engine.get_player(7).is_alive
    assert engine.state.bullet_manager.active_bullets == [], "所有子弹作废"
    print("  ✅ 实弹过期爆炸")


def test_gunner_give_bullet_directly():
    engine = _gunner_game("give_direct")
    night_then_day(engine)
    assert engine.gunner_give_bullet(6, "live")
    assert engine.gunner_give_bullet(6, BulletType.BLANK) is False, "每人只能持有一颗"
    assert engine.gunner_give_bullet(3, "blank") is False, "枪手不能给自己"
    print("  ✅ 直接发子弹")


# ========== 炸弹 ==========

def _bomb_game(game_id: str, with_bodyguard: bool = True) -> GameEngine:
    roles = [RoleId.GODFATHER, RoleId.BOMBER]
    roles.append(RoleId.BODYGUARD if with_bodyguard else RoleId.DETECTIVE)
    roles += [RoleId.SIMPLE_CITIZEN] * 4
    engine = make_engine(roles, game_id)
    act(engine, RoleId.BOMBER, 5, password=3)
    night_then_day(engine)
    return engine


def test_bomb_defused_by_target():
    """保镖放弃，目标猜对密码：拆除成功，目标存活，已使用标记保留"""
    engine = _bomb_game("bomb_defuse")
    assert engine.has_bomb_to_resolve()
    assert engine.start_bomb_siesta()
    assert engine.is_bodyguard_alive_for_bomb()
    assert engine.bomb_target_guess(3)["reason"] == "guardian_first"

    assert engine.bomb_guardian_skip()
    assert not engine.is_bodyguard_alive_for_bomb()
    result = engine.bomb_target_guess(3)

    assert result == {"success": True, "result": "defused"}
    assert engine.get_player(5).is_alive
    assert engine.state.bomb.phase == BombPhase.NONE
    assert engine.state.bomb.is_used
    assert not engine.has_bomb_to_resolve()
    print("  ✅ 目标拆弹")


def test_bomb_guardian_wrong_guess_dies():
    engine = _bomb_game("bomb_guardian")
    engine.start_bomb_siesta()

    result = engine.bomb_guardian_guess(1)

    assert result["result"] == "wrong"
    assert result["dead_id"] == 3
    assert engine.get_player(3).death_cause == DeathCause.GUARDIAN_BOMB
    assert engine.get_player(5).is_alive, "保镖代替目标死亡"
    assert engine.state.bomb.phase == BombPhase.NONE
    print("  ✅ 保镖猜错")


def test_bomb_target_explodes_without_bodyguard():
    engine = _bomb_game("bomb_explode", with_bodyguard=False)
    engine.start_bomb_siesta()
    assert not engine.is_bodyguard_alive_for_bomb()
    assert engine.bomb_guardian_guess(3)["success"] is False

    result = engine.bomb_target_guess(2)

    assert result["result"] == "exploded"
    assert engine.get_player(5).death_cause == DeathCause.BOMB
    print("  ✅ 目标被炸死")


def test_bomb_guess_without_device():
    roles = [RoleId.GODFATHER, RoleId.BOMBER, RoleId.BODYGUARD,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "bomb_none")
    night_then_day(engine)
    assert not engine.has_bomb_to_resolve()
    assert engine.start_bomb_siesta() is False
    assert engine.bomb_target_guess(1)["success"] is False
    assert engine.bomb_guardian_skip() is False
    print("  ✅ 没有炸弹时的操作")


# ========== 共济会 ==========

def test_framason_contamination_kills_alliance():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.FREEMASON,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "framason")
    act(engine, RoleId.FREEMASON, 4)
    night_then_day(engine)
    assert engine.get_framason_alliance_names() == ["玩家3", "玩家4"]

    engine.start_night()
    act(engine, RoleId.FREEMASON, 2)
    night_then_day(engine)
    assert engine.has_framason_contamination()

    result = engine.resolve_framason_contamination()

    assert result == {"dead_ids": [3, 4], "recruit_id": 2}
    assert engine.get_player(2).is_alive, "被招募的坏人不死"
    assert engine.get_player(3).death_cause == DeathCause.FRAMASON
    assert not engine.has_framason_contamination()
    print("  ✅ 共济会污染")


# ========== 主持人 ==========

def test_moderator_eliminate_not_revivable():
    roles = [RoleId.GODFATHER, RoleId.SIMPLE_MAFIA, RoleId.CONSTANTINE,
             RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN, RoleId.SIMPLE_CITIZEN]
    engine = make_engine(roles, "moderator")
    night_then_day(engine)

    assert engine.moderator_eliminate(4)["success"]
    assert engine.moderator_eliminate(4)["success"] is False, "不能重复淘汰"

    engine.start_night()
    assert engine.get_revivable_players() == [], "主持人淘汰无法复活"
    print("  ✅ 主持人淘汰")


def main():
    print("=" * 60)
    print("白天结算测试")
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
