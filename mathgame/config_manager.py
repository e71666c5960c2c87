"""
Configuration manager for math quiz game settings.
"""
import logging
from typing import Any, Dict, List, Optional

from .models import SessionConfig


class ConfigManager:
    """Manages default game settings offered to players."""

    # Default configuration values
    DEFAULT_DIFFICULTY = 12
    DEFAULT_TOTAL_ROUNDS = 10
    DEFAULT_ADVANCE_DELAY = 1.0

    # Validation limits
    MIN_DIFFICULTY = 2
    MAX_DIFFICULTY = 12
    ROUND_OPTIONS = (5, 10, 15, 20)
    MIN_ADVANCE_DELAY = 0.0
    MAX_ADVANCE_DELAY = 10.0

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._difficulty = self.DEFAULT_DIFFICULTY
        self._total_rounds = self.DEFAULT_TOTAL_ROUNDS
        self._advance_delay = self.DEFAULT_ADVANCE_DELAY

    def get_session_config(
        self,
        difficulty: Optional[int] = None,
        total_rounds: Optional[int] = None
    ) -> SessionConfig:
        """
        Build a session configuration, filling gaps with the current defaults.

        Args:
            difficulty: Optional override for the default difficulty
            total_rounds: Optional override for the default round count

        Returns:
            SessionConfig for a new session
        """
        return SessionConfig(
            difficulty=self._difficulty if difficulty is None else difficulty,
            total_rounds=self._total_rounds if total_rounds is None else total_rounds
        )

    def check_difficulty(self, level: Any) -> Optional[Dict[str, Any]]:
        """
        Check a difficulty against the offered range.

        Returns:
            None if the value is acceptable, otherwise a failure result dict
        """
        if isinstance(level, bool) or not isinstance(level, int):
            error_msg = f"Difficulty must be an integer, got {type(level).__name__}"
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(level).__name__}"
            }

        if level < self.MIN_DIFFICULTY:
            return {
                'success': False,
                'error': f"Difficulty must be at least {self.MIN_DIFFICULTY}",
                'user_message': f"❌ Too easy: Minimum level is {self.MIN_DIFFICULTY}"
            }

        if level > self.MAX_DIFFICULTY:
            return {
                'success': False,
                'error': f"Difficulty cannot exceed {self.MAX_DIFFICULTY}",
                'user_message': f"❌ Too hard: Maximum level is {self.MAX_DIFFICULTY}"
            }

        return None

    def check_total_rounds(self, rounds: Any) -> Optional[Dict[str, Any]]:
        """
        Check a round count against the offered options.

        Returns:
            None if the value is acceptable, otherwise a failure result dict
        """
        options = ", ".join(str(option) for option in self.ROUND_OPTIONS)

        if isinstance(rounds, bool) or not isinstance(rounds, int):
            return {
                'success': False,
                'error': f"Round count must be an integer, got {type(rounds).__name__}",
                'user_message': f"❌ Invalid input: Expected a number, got {type(rounds).__name__}"
            }

        if rounds not in self.ROUND_OPTIONS:
            return {
                'success': False,
                'error': f"Round count must be one of {options}, got {rounds}",
                'user_message': f"❌ Choose {options} rounds"
            }

        return None

    def set_difficulty(self, level: int) -> Dict[str, Any]:
        """
        Set the default difficulty with detailed error reporting.

        Args:
            level: Largest factor used in questions

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        failure = self.check_difficulty(level)
        if failure is not None:
            self.logger.error(failure['error'])
            return failure

        self._difficulty = level
        self.logger.info(f"Difficulty set to {level}")
        return {
            'success': True,
            'message': f"Difficulty set to {level}",
            'user_message': f"✅ Difficulty set to level {level}"
        }

    def get_difficulty(self) -> int:
        """Get current default difficulty."""
        return self._difficulty

    def set_total_rounds(self, rounds: int) -> Dict[str, Any]:
        """
        Set the default number of rounds with detailed error reporting.

        Args:
            rounds: One of ROUND_OPTIONS

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        failure = self.check_total_rounds(rounds)
        if failure is not None:
            self.logger.error(failure['error'])
            return failure

        self._total_rounds = rounds
        self.logger.info(f"Round count set to {rounds}")
        return {
            'success': True,
            'message': f"Round count set to {rounds}",
            'user_message': f"✅ Games will last {rounds} rounds"
        }

    def get_total_rounds(self) -> int:
        """Get current default round count."""
        return self._total_rounds

    def set_advance_delay(self, delay: float) -> Dict[str, Any]:
        """
        Set how long round feedback stays on screen before the game moves on.

        Args:
            delay: Seconds; 0 advances immediately

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(delay, bool) or not isinstance(delay, (int, float)):
            error_msg = f"Advance delay must be a number, got {type(delay).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(delay).__name__}"
            }

        if delay < self.MIN_ADVANCE_DELAY:
            error_msg = f"Advance delay must be at least {self.MIN_ADVANCE_DELAY} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Delay cannot be negative"
            }

        if delay > self.MAX_ADVANCE_DELAY:
            error_msg = f"Advance delay cannot exceed {self.MAX_ADVANCE_DELAY} seconds"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Delay too long: Maximum is {self.MAX_ADVANCE_DELAY:g} seconds"
            }

        self._advance_delay = float(delay)
        self.logger.info(f"Advance delay set to {delay} seconds")
        return {
            'success': True,
            'message': f"Advance delay set to {delay} seconds",
            'user_message': f"✅ Next question appears {delay:g}s after each answer"
        }

    def get_advance_delay(self) -> float:
        """Get current advance delay in seconds."""
        return self._advance_delay

    def apply_settings(self, game_config: Dict[str, Any]) -> List[str]:
        """
        Apply the ``game`` section of config.json.

        Invalid values are logged and skipped so the defaults stay in place.

        Returns:
            List of error messages for values that were rejected
        """
        errors = []
        setters = (
            ('default_difficulty', self.set_difficulty),
            ('default_rounds', self.set_total_rounds),
            ('advance_delay', self.set_advance_delay),
        )

        for key, setter in setters:
            if key not in game_config:
                continue
            result = setter(game_config[key])
            if not result['success']:
                errors.append(f"{key}: {result['error']}")

        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid game settings: {errors}")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to default values."""
        self._difficulty = self.DEFAULT_DIFFICULTY
        self._total_rounds = self.DEFAULT_TOTAL_ROUNDS
        self._advance_delay = self.DEFAULT_ADVANCE_DELAY
        self.logger.info("Configuration reset to defaults")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings.

        Returns:
            Dictionary with 'valid' flag and list of 'issues'
        """
        validation_result = {
            "valid": True,
            "issues": []
        }

        if self.check_difficulty(self._difficulty) is not None:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid difficulty: {self._difficulty}")

        if self.check_total_rounds(self._total_rounds) is not None:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid round count: {self._total_rounds}")

        if (not isinstance(self._advance_delay, (int, float)) or
                self._advance_delay < self.MIN_ADVANCE_DELAY or
                self._advance_delay > self.MAX_ADVANCE_DELAY):
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid advance delay: {self._advance_delay}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        return (
            f"Game Settings:\n"
            f"• Difficulty: {self._difficulty} (factors 1-{self._difficulty})\n"
            f"• Rounds: {self._total_rounds}\n"
            f"• Next question after: {self._advance_delay:g} seconds"
        )

    def get_configuration_health_check(self) -> Dict[str, Any]:
        """
        Perform a health check of the configuration.

        Returns:
            Dictionary with health status and recommendations
        """
        health_check = {
            'healthy': True,
            'warnings': [],
            'errors': [],
            'recommendations': []
        }

        validation_result = self.validate_settings()
        if not validation_result['valid']:
            health_check['healthy'] = False
            health_check['errors'].extend(
                f"❌ Configuration Issue: {issue}" for issue in validation_result['issues']
            )

        if self._advance_delay == 0:
            health_check['warnings'].append(
                "⚠️ Advance delay is 0, players will not see whether they answered correctly"
            )
            health_check['recommendations'].append(
                "Consider a delay of at least 1 second."
            )

        return health_check
