"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def _check_positive_ints(params: dict[str, Any], names: list[str]) -> list[ValidationError]:
        errors = []
        for name in names:
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a positive integer",
                        value=value
                    ))
        return errors

    @staticmethod
    def _check_non_negative(params: dict[str, Any], names: list[str]) -> list[ValidationError]:
        errors = []
        for name in names:
            if name in params:
                value = params[name]
                if not _is_number(value) or value < 0:
                    errors.append(ValidationError(
                        field=name,
                        message="Must be a non-negative number",
                        value=value
                    ))
        return errors

    @staticmethod
    def validate_indicator_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate indicator periods."""
        errors = ConfigValidator._check_positive_ints(params, [
            "rsi_period", "sma_period", "bollinger_period", "ema_fast",
            "ema_slow", "macd_fast", "macd_slow", "stoch_smooth_period",
        ])

        if "ema_fast" in params and "ema_slow" in params:
            if not errors and params["ema_fast"] >= params["ema_slow"]:
                errors.append(ValidationError(
                    field="ema_fast",
                    message="Must be shorter than ema_slow",
                    value=params["ema_fast"]
                ))

        return errors

    @staticmethod
    def validate_scoring_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate scorer weights and thresholds."""
        errors = ConfigValidator._check_positive_ints(params, ["min_points"])
        errors.extend(ConfigValidator._check_non_negative(params, [
            name for name in params if name.endswith("_weight")
        ]))

        if "bollinger_edge_pct" in params:
            value = params["bollinger_edge_pct"]
            if not _is_number(value) or value <= 0 or value >= 0.5:
                errors.append(ValidationError(
                    field="bollinger_edge_pct",
                    message="Must be a number between 0 and 0.5",
                    value=value
                ))

        if "confidence_min" in params and "confidence_max" in params:
            if params["confidence_min"] > params["confidence_max"]:
                errors.append(ValidationError(
                    field="confidence_min",
                    message="Must not exceed confidence_max",
                    value=params["confidence_min"]
                ))

        return errors

    @staticmethod
    def validate_scheduler_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate window lock timing parameters."""
        errors = ConfigValidator._check_positive_ints(
            params, ["window_seconds", "poll_interval_seconds"]
        )
        errors.extend(ConfigValidator._check_non_negative(params, [
            "min_wait_seconds", "max_wait_seconds", "clear_gap", "close_gap",
            "margin_pull_threshold", "margin_pull_seconds",
        ]))
        if errors:
            return errors

        if "min_wait_seconds" in params and "max_wait_seconds" in params:
            if params["min_wait_seconds"] > params["max_wait_seconds"]:
                errors.append(ValidationError(
                    field="min_wait_seconds",
                    message="Must not exceed max_wait_seconds",
                    value=params["min_wait_seconds"]
                ))

        if "close_gap" in params and "clear_gap" in params:
            if params["close_gap"] >= params["clear_gap"]:
                errors.append(ValidationError(
                    field="close_gap",
                    message="Must be smaller than clear_gap",
                    value=params["close_gap"]
                ))

        if "max_wait_seconds" in params and "window_seconds" in params:
            if params["max_wait_seconds"] >= params["window_seconds"]:
                errors.append(ValidationError(
                    field="max_wait_seconds",
                    message="Must be shorter than window_seconds",
                    value=params["max_wait_seconds"]
                ))

        prefix = params.get("window_prefix")
        if prefix is not None and (not isinstance(prefix, str) or not prefix):
            errors.append(ValidationError(
                field="window_prefix",
                message="Must be a non-empty string",
                value=prefix
            ))

        return errors

    @staticmethod
    def validate_cache_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate cache time-to-live values."""
        return ConfigValidator._check_non_negative(params, list(params))

    @staticmethod
    def validate_discovery_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate trader discovery parameters."""
        errors = ConfigValidator._check_positive_ints(
            params, ["lookback_windows", "min_windows", "top_n"]
        )
        errors.extend(ConfigValidator._check_non_negative(
            params, ["rediscovery_interval_seconds", "min_position_size"]
        ))

        if "win_threshold" in params:
            value = params["win_threshold"]
            if not _is_number(value) or value <= 0.5 or value > 1:
                errors.append(ValidationError(
                    field="win_threshold",
                    message="Must be a number between 0.5 and 1",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_consensus_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate consensus vote parameters."""
        return ConfigValidator._check_non_negative(params, ["vote_ttl_seconds"])

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "indicators" in config:
            errors.extend(ConfigValidator.validate_indicator_params(config["indicators"]))

        if "scoring" in config:
            errors.extend(ConfigValidator.validate_scoring_params(config["scoring"]))

        if "scheduler" in config:
            errors.extend(ConfigValidator.validate_scheduler_params(config["scheduler"]))

        if "cache" in config:
            errors.extend(ConfigValidator.validate_cache_params(config["cache"]))

        if "discovery" in config:
            errors.extend(ConfigValidator.validate_discovery_params(config["discovery"]))

        if "consensus" in config:
            errors.extend(ConfigValidator.validate_consensus_params(config["consensus"]))

        if "discovery" in config and "consensus" in config:
            vote_ttl = config["consensus"].get("vote_ttl_seconds", 0)
            interval = config["discovery"].get("rediscovery_interval_seconds", 0)
            if _is_number(vote_ttl) and _is_number(interval) and vote_ttl >= interval:
                errors.append(ValidationError(
                    field="vote_ttl_seconds",
                    message="Must be shorter than rediscovery_interval_seconds",
                    value=vote_ttl
                ))

        return errors
