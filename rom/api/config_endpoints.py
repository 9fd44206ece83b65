# rom/api/config_endpoints.py
from fastapi import APIRouter, HTTPException, Depends
from typing import Optional
from functools import lru_cache
from pydantic import BaseModel

from rom.config.config_manager import ConfigManager
from rom.core.base import UnknownJointError

# Initialize router
router = APIRouter(prefix="/api/config", tags=["configuration"])


@lru_cache()
def get_config_manager() -> ConfigManager:
    return ConfigManager()


# Pydantic models for request validation
class SessionConfig(BaseModel):
    duration_seconds: Optional[int] = None
    tick_interval: Optional[float] = None
    default_joint: Optional[str] = None
    visibility_threshold: Optional[float] = None


class PoseConfig(BaseModel):
    static_image_mode: Optional[bool] = None
    model_complexity: Optional[int] = None
    min_detection_confidence: Optional[float] = None
    min_tracking_confidence: Optional[float] = None


class LoggingConfig(BaseModel):
    level: Optional[str] = None


def _apply_updates(config_manager: ConfigManager, section: str, config: BaseModel):
    updates = {k: v for k, v in config if v is not None}
    if not updates:
        raise HTTPException(status_code=400, detail="No updates provided")

    try:
        success = config_manager.update_section(section, updates)
    except (UnknownJointError, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if not success:
        raise HTTPException(status_code=500, detail="Failed to update configuration")

    return {"status": "success", "config": config_manager.config[section]}


# Routes for managing configuration
@router.get("/")
async def get_all_config(config_manager: ConfigManager = Depends(get_config_manager)):
    """Get complete configuration."""
    return config_manager.config


@router.get("/session")
async def get_session_config(config_manager: ConfigManager = Depends(get_config_manager)):
    """Get sampling session configuration."""
    return config_manager.get_session_config()


@router.put("/session")
async def update_session_config(config: SessionConfig,
                                config_manager: ConfigManager = Depends(get_config_manager)):
    """Update sampling session configuration."""
    return _apply_updates(config_manager, "session", config)


@router.get("/pose")
async def get_pose_config(config_manager: ConfigManager = Depends(get_config_manager)):
    """Get pose detection configuration."""
    return config_manager.get_pose_config()


@router.put("/pose")
async def update_pose_config(config: PoseConfig,
                             config_manager: ConfigManager = Depends(get_config_manager)):
    """Update pose detection configuration."""
    return _apply_updates(config_manager, "pose", config)


@router.get("/logging")
async def get_logging_config(config_manager: ConfigManager = Depends(get_config_manager)):
    """Get logging configuration."""
    return config_manager.get_logging_config()


@router.put("/logging")
async def update_logging_config(config: LoggingConfig,
                                config_manager: ConfigManager = Depends(get_config_manager)):
    """Update logging configuration."""
    return _apply_updates(config_manager, "logging", config)


@router.post("/reset")
async def reset_config(config_manager: ConfigManager = Depends(get_config_manager)):
    """Reset configuration to defaults."""
    if not config_manager.reset_to_defaults():
        raise HTTPException(status_code=500, detail="Failed to reset configuration")
    return {"status": "success", "config": config_manager.config}
