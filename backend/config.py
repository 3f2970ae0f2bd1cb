"""马菲亚主持人引擎配置"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """应用配置，从环境变量或 .env 文件读取"""

    # 应用基础
    app_name: str = "马菲亚主持人"
    debug: bool = False

    # CORS
    cors_origins: list[str] = ["http://localhost:3003", "http://localhost:5173", "http://localhost:3000"]

    # 存档目录
    game_data_dir: str = "game_data"

    # --- 默认规则参数（新建游戏时写入 GameConfig） ---
    min_players: int = 4

    # 枪手子弹（空包弹 / 实弹）
    blank_bullets: int = 2
    live_bullets: int = 2

    # 共济会最大招募人数（不含首领）
    framason_max_members: int = 2

    # 存活黑手党人数 <= 该值时教父可以谈判
    negotiation_threshold: int = 2

    # 狙击手子弹数
    sniper_max_shots: int = 2

    # 十二宫开枪频率：every / odd / even
    zodiac_frequency: str = "every"

    # 医生自救次数上限
    watson_self_heal_limit: int = 1
    lecter_self_heal_limit: int = 1

    # 计时（秒），仅保存，由界面层使用
    day_timer_duration: int = 180
    defense_timer_duration: int = 60
    blind_day_duration: int = 60

    model_config = {"env_file": ".env", "env_prefix": "MAFIA_"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
