# backend/config.py
"""Service settings, read from environment variables at import time."""

import os

DEFAULT_UPSTREAMS = {
    "api": "https://api.weather.gov",
    "radar": "https://radar.weather.gov",
    "cpc": "https://www.cpc.ncep.noaa.gov",
    "spc": "https://www.spc.noaa.gov",
    "mesonet": "https://mesonet.agron.iastate.edu",
}


def _parse_upstreams(raw: str | None) -> dict[str, str]:
    """UPSTREAMS="api=https://api.weather.gov,radar=https://radar.weather.gov"."""
    if not raw:
        return dict(DEFAULT_UPSTREAMS)
    upstreams = {}
    for item in raw.split(","):
        name, sep, base = item.partition("=")
        if not sep or not name.strip() or not base.strip():
            raise ValueError(f"Invalid UPSTREAMS entry: {item!r}")
        upstreams[name.strip().strip("/")] = base.strip()
    return upstreams


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self, **overrides):
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "8080"))
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.user_agent: str = os.getenv("USER_AGENT", "(WeatherStar 4000+, ws4000@netbymatt.com)")

        self.upstreams: dict[str, str] = _parse_upstreams(os.getenv("UPSTREAMS"))
        self.upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "10"))

        self.sweep_interval: float = float(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "300"))
        self.sweep_grace: float = float(os.getenv("CACHE_SWEEP_GRACE_SECONDS", "600"))

        for name, value in overrides.items():
            if not hasattr(self, name):
                raise AttributeError(f"Unknown setting: {name}")
            setattr(self, name, value)


settings = Settings()
