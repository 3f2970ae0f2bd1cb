"""角色注册表（静态、只读）"""

from __future__ import annotations

from types import MappingProxyType
from typing import Optional

from models.game_models import NightActionType, RoleDefinition, RoleId, Team


_ROLES = (
    # --- 黑手党 ---
    RoleDefinition(RoleId.GODFATHER, "教父", Team.MAFIA,
                   night_action=NightActionType.KILL, priority=40, has_shield=True),
    RoleDefinition(RoleId.DR_LECTER, "莱克特医生", Team.MAFIA,
                   night_action=NightActionType.MAFIA_HEAL, priority=30),
    RoleDefinition(RoleId.JADOOGAR, "巫师", Team.MAFIA,
                   night_action=NightActionType.BLOCK, priority=10),
    RoleDefinition(RoleId.MATADOR, "斗牛士", Team.MAFIA,
                   night_action=NightActionType.SILENCE, priority=90),
    RoleDefinition(RoleId.BOMBER, "炸弹客", Team.MAFIA,
                   night_action=NightActionType.BOMB, priority=100),
    RoleDefinition(RoleId.SPY, "间谍", Team.MAFIA),
    RoleDefinition(RoleId.SIMPLE_MAFIA, "普通黑手党", Team.MAFIA, max_count=10, unique=False),

    # --- 独立 ---
    RoleDefinition(RoleId.JACK, "杰克", Team.INDEPENDENT,
                   night_action=NightActionType.CURSE, priority=50,
                   shoot_immune=True, vote_immune=True, morning_shot_immune=True),
    RoleDefinition(RoleId.ZODIAC, "十二宫", Team.INDEPENDENT,
                   night_action=NightActionType.SOLO_KILL, priority=60,
                   shoot_immune=True, morning_shot_immune=True),

    # --- 市民 ---
    RoleDefinition(RoleId.DR_WATSON, "华生医生", Team.CITIZEN,
                   night_action=NightActionType.HEAL, priority=20),
    RoleDefinition(RoleId.DETECTIVE, "侦探", Team.CITIZEN,
                   night_action=NightActionType.INVESTIGATE, priority=80),
    RoleDefinition(RoleId.KANE, "公民凯恩", Team.CITIZEN,
                   night_action=NightActionType.KANE_REVEAL, priority=140),
    RoleDefinition(RoleId.CONSTANTINE, "康斯坦丁", Team.CITIZEN,
                   night_action=NightActionType.REVIVE, priority=110),
    RoleDefinition(RoleId.GUNNER, "枪手", Team.CITIZEN,
                   night_action=NightActionType.GIVE_BULLET, priority=130),
    RoleDefinition(RoleId.FREEMASON, "共济会", Team.CITIZEN,
                   night_action=NightActionType.FRAMASON_RECRUIT, priority=120),
    RoleDefinition(RoleId.BODYGUARD, "保镖", Team.CITIZEN),
    RoleDefinition(RoleId.SNIPER, "狙击手", Team.CITIZEN,
                   night_action=NightActionType.SNIPE, priority=70, has_shield=True),
    RoleDefinition(RoleId.REPORTER, "记者", Team.CITIZEN,
                   night_action=NightActionType.CHECK_NEGOTIATION, priority=45),
    RoleDefinition(RoleId.SUSPECT, "嫌疑人", Team.CITIZEN),
    RoleDefinition(RoleId.SIMPLE_CITIZEN, "普通市民", Team.CITIZEN, max_count=10, unique=False),
)

ROLE_REGISTRY: MappingProxyType[RoleId, RoleDefinition] = MappingProxyType(
    {role.id: role for role in _ROLES}
)

# 声明顺序，用于同优先级时的稳定排序
_DECLARATION_INDEX = {role.id: idx for idx, role in enumerate(_ROLES)}

TEAM_NAMES = MappingProxyType({
    Team.MAFIA: "黑手党阵营",
    Team.CITIZEN: "市民阵营",
    Team.INDEPENDENT: "独立阵营",
})

# 谈判成功的“普通”市民
NEGOTIABLE_ROLES = frozenset({RoleId.SIMPLE_CITIZEN, RoleId.SUSPECT})


def get_role(role_id: RoleId | str | None) -> Optional[RoleDefinition]:
    if role_id is None:
        return None
    try:
        return ROLE_REGISTRY.get(RoleId(role_id))
    except ValueError:
        return None


def get_team(role_id: RoleId | str | None) -> Optional[Team]:
    role = get_role(role_id)
    return role.team if role else None


def get_night_roles() -> list[RoleDefinition]:
    """有夜晚行动的角色，按优先级排序（同优先级按声明顺序）"""
    return sorted(
        (r for r in _ROLES if r.has_night_action),
        key=lambda r: (r.priority, _DECLARATION_INDEX[r.id]),
    )


def get_team_name(team: Team | str) -> str:
    return TEAM_NAMES.get(Team(team), str(team))
