from dataclasses import dataclass


@dataclass
class Config:
    host: str
    password: str
    timeout: float = 30
    scheme: str = "http"
    log_level: str = "INFO"
