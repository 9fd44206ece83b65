# rom/config/config_manager.py
import json
import os
from typing import Dict, Any, Optional
import logging
from pathlib import Path
import copy

from rom.config.joint_catalog import get_joint_definition
from rom.core.session import SamplingSession

logger = logging.getLogger("rom.config_manager")


class ConfigManager:
    """
    Manages configuration settings for the ROM assessment engine.

    Settings live in a JSON file (config.json) under the configuration
    directory and are merged over DEFAULT_CONFIG on load, so new options
    always have a value. Clinical thresholds are not configurable here;
    they belong to the joint catalog and the observation rules.
    """

    DEFAULT_CONFIG = {
        # Sampling session settings
        "session": {
            "duration_seconds": 15,
            "tick_interval": 1.0,
            "default_joint": "elbow",
            "visibility_threshold": 0.5
        },

        # Pose detection settings (MediaPipe landmark source)
        "pose": {
            "static_image_mode": False,
            "model_complexity": 1,
            "min_detection_confidence": 0.5,
            "min_tracking_confidence": 0.5
        },

        # Logging settings
        "logging": {
            "level": "INFO"
        }
    }

    def __init__(self, config_dir: Optional[str] = None):
        """
        Initialize configuration manager.

        Args:
            config_dir: Directory for storing configuration files
                (defaults to $ROM_CONFIG_DIR, then ~/.rom)
        """
        config_dir = config_dir or os.environ.get("ROM_CONFIG_DIR")
        self.config_dir = Path(config_dir) if config_dir else Path.home() / ".rom"
        self.config_path = self.config_dir / "config.json"

        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.config = self._load_config()

        logger.info(f"Configuration manager initialized with config at: {self.config_path}")

    def _load_config(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            logger.info(f"No configuration at {self.config_path}, writing defaults")
            config = copy.deepcopy(self.DEFAULT_CONFIG)
            self._write_json(self.config_path, config)
            return config

        stored = self._read_json(self.config_path)
        if stored is None:
            logger.info("Using default configuration")
            return copy.deepcopy(self.DEFAULT_CONFIG)
        return self._merge_with_defaults(stored)

    @staticmethod
    def _read_json(path) -> Optional[Dict[str, Any]]:
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Could not read configuration from {path}: {e}")
            return None

        if not isinstance(data, dict):
            logger.error(f"Configuration in {path} is not a JSON object")
            return None
        return data

    @staticmethod
    def _write_json(path, config: Dict[str, Any]) -> bool:
        try:
            with open(path, 'w') as f:
                json.dump(config, f, indent=4)
        except OSError as e:
            logger.error(f"Could not write configuration to {path}: {e}")
            return False
        return True

    def _merge_with_defaults(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Overlay stored settings on DEFAULT_CONFIG so every option has a value."""
        merged = copy.deepcopy(self.DEFAULT_CONFIG)
        for section, values in config.items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(values)
            else:
                merged[section] = values
        return merged

    def save(self) -> bool:
        return self._write_json(self.config_path, self.config)

    def get_session_config(self) -> Dict[str, Any]:
        return self.config.get("session", {})

    def get_pose_config(self) -> Dict[str, Any]:
        return self.config.get("pose", {})

    def get_logging_config(self) -> Dict[str, Any]:
        return self.config.get("logging", {})

    @staticmethod
    def _validate(section: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        updates = dict(updates)

        if section == "session":
            if "default_joint" in updates:
                updates["default_joint"] = get_joint_definition(updates["default_joint"]).joint_id
            duration = updates.get("duration_seconds")
            if duration is not None and (isinstance(duration, bool) or duration != int(duration) or duration <= 0):
                raise ValueError(f"duration_seconds must be a positive whole number, got {duration}")
            interval = updates.get("tick_interval")
            if interval is not None and not interval > 0:
                raise ValueError(f"tick_interval must be positive, got {interval}")
            threshold = updates.get("visibility_threshold")
            if threshold is not None and not 0.0 <= threshold <= 1.0:
                raise ValueError(f"visibility_threshold must be within 0..1, got {threshold}")

        elif section == "pose":
            complexity = updates.get("model_complexity")
            if complexity is not None and complexity not in (0, 1, 2):
                raise ValueError(f"model_complexity must be 0, 1 or 2, got {complexity}")
            for key in ("min_detection_confidence", "min_tracking_confidence"):
                value = updates.get(key)
                if value is not None and not 0.0 <= value <= 1.0:
                    raise ValueError(f"{key} must be within 0..1, got {value}")

        elif section == "logging" and "level" in updates:
            level = str(updates["level"]).upper()
            if not isinstance(logging.getLevelName(level), int):
                raise ValueError(f"Unknown logging level: {updates['level']}")
            updates["level"] = level

        return updates

    def update_section(self, section: str, updates: Dict[str, Any]) -> bool:
        """
        Update a section of the configuration.

        Args:
            section: Section name (session, pose, logging)
            updates: Dictionary of updates

        Returns:
            True if saved, False for an unknown section or a write failure

        Raises:
            UnknownJointError: if default_joint is not in the catalog
            ValueError: if a value is out of range; nothing is changed
        """
        if section not in self.config:
            logger.error(f"Invalid configuration section: {section}")
            return False

        self.config[section].update(self._validate(section, updates))
        return self.save()

    def create_session(self, joint_id: Optional[str] = None, patient_id: str = "", **kwargs) -> SamplingSession:
        """
        Create a sampling session from the session settings.

        Args:
            joint_id: Catalog id (defaults to the configured default joint)
            patient_id: Patient identifier
            **kwargs: Overrides passed to SamplingSession

        Returns:
            New SamplingSession in the idle state
        """
        session_config = self.get_session_config()
        options = {
            "duration_seconds": session_config.get("duration_seconds", 15),
            "visibility_threshold": session_config.get("visibility_threshold", 0.5),
            **kwargs
        }
        joint = get_joint_definition(joint_id or session_config.get("default_joint", "elbow"))
        return SamplingSession(joint, patient_id=patient_id, **options)

    def reset_to_defaults(self) -> bool:
        self.config = copy.deepcopy(self.DEFAULT_CONFIG)
        return self.save()

    def export_config(self, output_path: str) -> bool:
        return self._write_json(output_path, self.config)

    def import_config(self, config_path: str) -> bool:
        """Replace the current settings with those in a JSON file and persist them."""
        imported = self._read_json(config_path)
        if imported is None:
            return False

        self.config = self._merge_with_defaults(imported)
        return self.save()
