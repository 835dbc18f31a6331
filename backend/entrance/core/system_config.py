"""
System configuration helper functions for accessing the SystemConfig table.

Configuration values are stored as JSON, allowing flexible data structures.

Common configuration keys:
- section_weights: {"reading": 0.4, "grammar": 0.3, ...}
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from entrance.core.adaptive.sections import SECTION_ORDER
from entrance.core.config import settings
from entrance.core.datetime_utils import utc_now
from entrance.core.exceptions import InvalidInputError
from entrance.models.models import SystemConfig

logger = logging.getLogger(__name__)

SECTION_WEIGHTS_KEY = "section_weights"


def get_config_entry(db: Session, key: str) -> Optional[SystemConfig]:
    """Get the SystemConfig row for a key, or None."""
    return db.query(SystemConfig).filter(SystemConfig.key == key).first()


def get_config(db: Session, key: str, default: Any = None) -> Any:
    """
    Get a configuration value from the SystemConfig table.

    Args:
        db: Database session
        key: Configuration key to retrieve
        default: Default value to return if key doesn't exist

    Returns:
        The configuration value, or default if not found
    """
    config = get_config_entry(db, key)
    if config is None:
        return default
    return config.value


def set_config(db: Session, key: str, value: Any) -> SystemConfig:
    """
    Set a configuration value in the SystemConfig table.

    If the key already exists, updates the value. Otherwise, creates a new entry.

    Args:
        db: Database session
        key: Configuration key to set
        value: Value to store (must be JSON-serializable)

    Returns:
        The SystemConfig instance (new or updated)
    """
    config = db.query(SystemConfig).filter(SystemConfig.key == key).first()

    if config is None:
        config = SystemConfig(key=key, value=value, updated_at=utc_now())
        db.add(config)
    else:
        config.value = value
        config.updated_at = utc_now()  # type: ignore[assignment]

    db.commit()
    db.refresh(config)
    return config


def validate_section_weights(weights: Any) -> Dict[str, float]:
    """
    Validate a section weight mapping.

    Raises:
        InvalidInputError: If weights is not a mapping of known sections to
            non-negative numbers
    """
    if not isinstance(weights, dict):
        raise InvalidInputError("Section weights must be an object")
    cleaned: Dict[str, float] = {}
    for section, weight in weights.items():
        if section not in SECTION_ORDER:
            raise InvalidInputError(f"Unknown section '{section}' in section weights")
        if isinstance(weight, bool) or not isinstance(weight, (int, float)):
            raise InvalidInputError(f"Weight for '{section}' must be a number")
        if weight < 0:
            raise InvalidInputError(f"Weight for '{section}' must not be negative")
        cleaned[section] = float(weight)
    return cleaned


def get_section_weight_overrides(db: Session) -> Optional[Dict[str, float]]:
    """
    Get the stored section weight overrides, if any.

    A malformed stored value is logged and ignored.
    """
    raw = get_config(db, SECTION_WEIGHTS_KEY)
    if raw is None:
        return None
    try:
        return validate_section_weights(raw)
    except InvalidInputError as e:
        logger.warning(f"Ignoring malformed {SECTION_WEIGHTS_KEY} config: {e}")
        return None


def set_section_weights(db: Session, weights: Dict[str, float]) -> SystemConfig:
    """
    Store section weight overrides (validated first).

    Raises:
        InvalidInputError: If the mapping is invalid
    """
    return set_config(db, SECTION_WEIGHTS_KEY, validate_section_weights(weights))


def get_effective_section_weights(db: Session) -> Dict[str, float]:
    """
    Weights used by the finalizer.

    Starts from settings.SECTION_WEIGHTS and overrides key by key with the
    system_config entry. Sections missing from both weigh 0.
    """
    weights = {section: 0.0 for section in SECTION_ORDER}
    weights.update(settings.SECTION_WEIGHTS)
    overrides = get_section_weight_overrides(db)
    if overrides:
        weights.update(overrides)
    return weights
