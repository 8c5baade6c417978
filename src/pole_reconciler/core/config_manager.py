import copy
import json
import logging
from pathlib import Path


class ConfigManager:
    """Manages configuration loading, saving, and defaults"""

    def __init__(self, base_dir=None):
        if base_dir is None:
            # Use current working directory if no base_dir provided
            base_dir = Path.cwd()
        self.base_dir = Path(base_dir)
        self.configs_dir = self.base_dir / "configurations"
        self.configs_dir.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def get_default_config():
        """Get default configuration"""
        return {
            "pole_id_prefixes": [
                "POLE NUMBER",
                "POLE NO.",
                "POLE NO",
                "POLE #",
                "POLE#",
                "POLE-",
                "POLE_",
                "POLE:",
                "POLE "
            ],
            "comm_keywords": [
                "communication",
                "fiber",
                "telephone",
                "telco",
                "catv",
                "cable tv",
                "coax",
                "telecom",
                "comm"
            ],
            "power_keywords": [
                "primary",
                "neutral",
                "secondary",
                "electrical",
                "electric",
                "power",
                "service",
                "street light",
                "streetlight",
                "transformer",
                "supply"
            ],
            "riser_keywords": [
                "riser"
            ],
            "guy_keywords": [
                "guy"
            ],
            "design_state_keywords": {
                "measured": ["measured", "existing"],
                "recommended": ["recommended", "proposed"]
            },
            "grade_keyword": "Grade C",
            "pole_number_keys": [
                "attributes.PoleNumber",
                "attributes.pole_number",
                "attributes.pole_tag",
                "attributes.scid",
                "attributes.DLOC_number",
                "properties.PoleNumber",
                "properties.pole_number",
                "properties.pole_tag",
                "properties.scid",
                "PoleNumber",
                "pole_number",
                "pole_tag",
                "scid",
                "label"
            ],
            "owner_keys": [
                "attributes.pole_owner",
                "attributes.owner",
                "properties.pole_owner",
                "properties.owner",
                "pole_owner",
                "owner"
            ],
            "match_scoring": {
                "owner_exact": 25,
                "owner_partial": 15,
                "type_exact": 20,
                "type_partial": 10,
                "alias": 10,
                "height_max": 5,
                "height_window_inches": 24,
                "threshold": 10
            },
            "owner_aliases": [
                ["AT&T", "ATT"],
                ["Charter", "Spectrum"]
            ],
            "underground_connection_types": [
                "underground_path",
                "underground"
            ],
            "reference_connection_types": [
                "ref",
                "reference"
            ],
            "backspan_end_point_types": [
                "PREVIOUS_POLE"
            ],
            "mainline_end_point_types": [
                "PREVIOUS_POLE",
                "NEXT_POLE"
            ],
            "output_settings": {
                "attachments_sheet": "Attachments",
                "errors_sheet": "Errors"
            },
            "processing_options": {
                "emit_unmatched_warnings": True
            }
        }

    @staticmethod
    def with_defaults(config):
        """Fill any missing top-level keys from the default configuration"""
        merged = ConfigManager.get_default_config()
        if config:
            for key, value in config.items():
                if isinstance(value, dict) and isinstance(merged.get(key), dict):
                    merged[key].update(copy.deepcopy(value))
                else:
                    merged[key] = copy.deepcopy(value)
        return merged

    def get_config_file_path(self, config_name):
        """Get file path for configuration"""
        if config_name == "Default":
            return self.base_dir / "pole_reconciler_config.json"
        else:
            return self.configs_dir / f"{config_name}.json"

    def get_available_configs(self):
        """Get list of available configurations"""
        configs = ["Default"]
        try:
            for file in sorted(self.configs_dir.glob("*.json")):
                configs.append(file.stem)
        except OSError as e:
            logging.warning(f"Could not list configurations in {self.configs_dir}: {e}")
        return configs

    def load_config(self, config_name):
        """Load configuration, merged over the defaults"""
        config_file = self.get_config_file_path(config_name)
        loaded = {}

        if config_file.exists():
            try:
                with open(config_file, 'r', encoding='utf-8') as f:
                    loaded = json.load(f)
                logging.info(f"Configuration for '{config_name}' successfully loaded from {config_file}")
            except (OSError, ValueError) as e:
                logging.warning(f"Failed to load configuration from {config_file}: {e}")
                loaded = {}

        return self.with_defaults(loaded)

    def save_config(self, config_name, config):
        """Save configuration"""
        config_file = self.get_config_file_path(config_name)
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config, f, indent=2)

            logging.info(f"Configuration for '{config_name}' successfully saved to {config_file}")
            return True
        except (OSError, TypeError) as e:
            logging.error(f"Failed to save configuration to {config_file}: {e}")
            return False

    def delete_config(self, config_name):
        """Delete configuration"""
        if config_name == "Default":
            return False

        config_file = self.get_config_file_path(config_name)
        try:
            if config_file.exists():
                config_file.unlink()
            logging.info(f"Configuration '{config_name}' deleted from {config_file}")
            return True
        except OSError as e:
            logging.error(f"Failed to delete configuration '{config_name}' at {config_file}: {e}")
            return False
