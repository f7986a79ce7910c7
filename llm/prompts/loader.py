"""Prompt loading and rendering."""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from logger import get_logger

logger = get_logger()

_REQUIRED_KEYS = ("system_prompt", "user_prompt_template")


class PromptManager:
    """Loads prompt definitions from YAML files and renders them.

    Each prompt file holds a ``system_prompt``, a ``user_prompt_template``
    with ``str.format`` placeholders, model ``parameters`` and a ``version``.
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        """Initialize the prompt manager.

        Args:
            prompts_dir: Directory containing prompt YAML files.
                        Defaults to the directory of this module.
        """
        self.prompts_dir = prompts_dir or Path(__file__).parent
        self._cache: Dict[str, Dict[str, Any]] = {}

    def load_prompt(self, prompt_name: str) -> Dict[str, Any]:
        """Load a prompt configuration from its YAML file (cached).

        Args:
            prompt_name: Name of the prompt file (without .yaml extension).

        Returns:
            Dictionary containing prompt configuration.

        Raises:
            FileNotFoundError: If prompt file doesn't exist.
            ValueError: If the file lacks a required key.
            yaml.YAMLError: If YAML is invalid.
        """
        if prompt_name in self._cache:
            return self._cache[prompt_name]

        prompt_file = self.prompts_dir / f"{prompt_name}.yaml"
        if not prompt_file.exists():
            raise FileNotFoundError(f"Prompt file not found: {prompt_file}")

        logger.debug(f"Loading prompt from {prompt_file}")
        with open(prompt_file, "r") as f:
            prompt_config = yaml.safe_load(f) or {}

        missing = [key for key in _REQUIRED_KEYS if key not in prompt_config]
        if missing:
            raise ValueError(
                f"Prompt '{prompt_name}' is missing required key(s): {', '.join(missing)}"
            )

        self._cache[prompt_name] = prompt_config
        return prompt_config

    def render_prompt(
        self, prompt_name: str, variables: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Load and render a prompt with the given variables.

        Args:
            prompt_name: Name of the prompt to load.
            variables: Values substituted into the user prompt template.

        Returns:
            Dictionary with keys system_prompt, user_prompt, parameters, version.

        Raises:
            ValueError: If the template references a variable not provided.
        """
        prompt_config = self.load_prompt(prompt_name)

        try:
            user_prompt = prompt_config["user_prompt_template"].format(**variables)
        except KeyError as e:
            raise ValueError(
                f"Prompt '{prompt_name}' needs variable {e.args[0]!r}"
            ) from e

        return {
            "system_prompt": prompt_config["system_prompt"].strip(),
            "user_prompt": user_prompt.strip(),
            "parameters": prompt_config.get("parameters", {}),
            "version": prompt_config.get("version", "unknown"),
        }
