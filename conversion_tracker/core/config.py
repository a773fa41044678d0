from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Optional
import os


class Settings(BaseSettings):
    # リテンション設定
    retention_window_seconds: float = 3600      # 完了ジョブを保持する時間 (0以下で無効)
    sweep_max_age_seconds: float = 24 * 60 * 60  # 定期スイープで削除する終了ジョブの経過時間
    sweep_interval_seconds: float = 600          # 定期スイープ間隔 (0以下で無効)

    # 照会設定
    recent_limit: int = 10

    # 実行系設定
    simulation_duration_seconds: float = 5.0
    workspace_path: str = "tmp_workspace"
    image_dpi: int = 150
    image_format: str = "png"

    # ログ設定
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def retention_window(self) -> Optional[float]:
        """Retention window in seconds, or None when scheduled reclaim is disabled."""
        if self.retention_window_seconds <= 0:
            return None
        return self.retention_window_seconds

    @property
    def sweep_max_age_ms(self) -> int:
        return int(self.sweep_max_age_seconds * 1000)

    def get_output_dirpath(self, job_id: str) -> str:
        """ジョブIDに基づいて出力ディレクトリのパスを取得"""
        return os.path.join(self.workspace_path, job_id)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
