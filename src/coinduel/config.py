"""Client configuration loader."""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path

from coinduel.core.poshti import DEFAULT_URL


@dataclass
class ServerConfig:
    url: str = DEFAULT_URL
    project_id: str = "04f875b8-ce46-4800-8d7c-295d9779efb9"
    token_env: str = "POSHTI_TOKEN"     # env var holding the auth token
    channel: str = "test"
    start_url: str = "https://app.poshti.live/start"
    connect_timeout_s: float = 10.0
    join_wait_s: float = 5.0
    heartbeat_interval_s: float = 1.0
    idle_threshold_s: float = 5.0

    def token(self) -> str | None:
        return os.environ.get(self.token_env) or None


@dataclass
class GameConfig:
    seed: int | None = None             # None = fresh seed every run
    start_from_left: bool = False       # where the cursor lands after a pick


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Path | None = Path("coinduel.log")


@dataclass
class ClientConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    game: GameConfig = field(default_factory=GameConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Path | None = None) -> ClientConfig:
    """Load client config from YAML file. ``None`` gives the defaults."""
    if path is None:
        return ClientConfig()

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    s = raw.get("server", {})
    defaults = ServerConfig()
    server = ServerConfig(
        url=s.get("url", defaults.url),
        project_id=s.get("project_id", defaults.project_id),
        token_env=s.get("token_env", defaults.token_env),
        channel=s.get("channel", defaults.channel),
        start_url=s.get("start_url", defaults.start_url),
        connect_timeout_s=float(s.get("connect_timeout_s", defaults.connect_timeout_s)),
        join_wait_s=float(s.get("join_wait_s", defaults.join_wait_s)),
        heartbeat_interval_s=float(
            s.get("heartbeat_interval_s", defaults.heartbeat_interval_s)
        ),
        idle_threshold_s=float(s.get("idle_threshold_s", defaults.idle_threshold_s)),
    )

    g = raw.get("game", {})
    game = GameConfig(
        seed=g.get("seed"),
        start_from_left=bool(g.get("start_from_left", False)),
    )

    lg = raw.get("logging", {})
    log_file = lg.get("file", "coinduel.log")
    logging_cfg = LoggingConfig(
        level=str(lg.get("level", "INFO")).upper(),
        file=Path(log_file) if log_file else None,
    )

    return ClientConfig(server=server, game=game, logging=logging_cfg)
