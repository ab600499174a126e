"""
Configuration management for the exam scheduling API.
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings."""

    # Application
    app_name: str = "Exam Scheduling API"
    app_version: str = "1.0.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 8080
    reload: bool = False

    # Scheduler
    default_ordering: str = "size"      # "size", "priority" or "deadline"
    default_strategy: str = "greedy"    # "greedy" or "optimal"
    enforce_exam_duration: bool = False
    schedule_deadline_seconds: Optional[float] = None

    # Solver (used by the "optimal" strategy)
    solver_timeout_seconds: int = 30
    solver_random_seed: int = 42
    solver_num_workers: int = 1

    # Logging
    log_level: str = "INFO"

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = False


settings = Settings()
