from pathlib import Path
import json
from typing import Dict, Any, Mapping, List

# Package defaults (bundled with code)
PACKAGE_CONFIG_DIR = Path(__file__).parent / "defaults"

# User configs (in project root, gitignored)
PROJECT_ROOT = Path(__file__).parents[3]
USER_CONFIG_DIR = PROJECT_ROOT / "config"

class ConfigLoader:
    """Load configuration with user overrides"""

    @staticmethod
    def load_config(config_name: str) -> Dict[str, Any]:
        """
        Load config with fallback: user config -> default config

        Args:
            config_name: Name of the config file (e.g., 'vocabulary.json')

        Raises:
            FileNotFoundError: If no config file was found

        Returns:
            Parsed JSON configuration
        """
        user_config_path = USER_CONFIG_DIR / config_name
        if user_config_path.exists():
            with open(user_config_path, encoding="utf-8") as f:
                return json.load(f)

        default_config_path = PACKAGE_CONFIG_DIR / config_name
        if default_config_path.exists():
            with open(default_config_path, encoding="utf-8") as f:
                return json.load(f)

        raise FileNotFoundError(
            f"Config file '{config_name}' not found in:\n"
            f" - {user_config_path}\n"
            f" - {default_config_path}"
        )

    @staticmethod
    def load_vocabulary_config() -> Dict[str, Any]:
        """Load vocabulary source tables"""
        return ConfigLoader.load_config('vocabulary.json')

    @staticmethod
    def load_abbreviations_config() -> Dict[str, List[str]]:
        """Load the static abbreviation table"""
        return ConfigLoader.load_config('abbreviations.json').get("abbreviations", {})

    @staticmethod
    def load_context_config() -> Dict[str, Any]:
        """Load time bands, action rules and fallback thresholds"""
        return ConfigLoader.load_config('context.json')

    @staticmethod
    def load_engine_config() -> Dict[str, Any]:
        """Load confidence constants for the classification engine"""
        return ConfigLoader.load_config('engine.json')

    @staticmethod
    def load_custom_categories() -> Mapping[str, List[str]]:
        """
        Load user-defined categories and their keywords.

        Returns:
            Mapping of category label to keywords, empty if the user has none
        """
        try:
            return ConfigLoader.load_config('custom_categories.json').get("categories", {})
        except FileNotFoundError:
            # User hasn't created custom categories yet - that's fine.
            return {}
