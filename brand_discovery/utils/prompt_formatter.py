"""
Prompt Formatter - Model-specific prompt formatting

Responsibilities:
- Detect model family from model name
- Apply model-specific instruction formatting with a system prompt
- Use tokenizer chat template if available
- Fallback to manual formatting for known families

Design principles:
- Tokenizer template priority (most robust)
- Templates without a system role get the persona merged into the user turn
- Manual fallback for known families
- Generic passthrough for unknown models
- Stateless formatting (no side effects)
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def _merge(prompt: str, system_prompt: Optional[str]) -> str:
    """Prepend the system prompt to the user prompt (families with no system slot)."""
    if not system_prompt:
        return prompt
    return f"{system_prompt}\n\n{prompt}"


def _llama3(prompt: str, system_prompt: Optional[str]) -> str:
    system_block = ""
    if system_prompt:
        system_block = f"<|start_header_id|>system<|end_header_id|>\n\n{system_prompt}<|eot_id|>"
    return (
        f"<|begin_of_text|>{system_block}"
        f"<|start_header_id|>user<|end_header_id|>\n\n{prompt}<|eot_id|>"
        f"<|start_header_id|>assistant<|end_header_id|>\n\n"
    )


def _llama2(prompt: str, system_prompt: Optional[str]) -> str:
    if system_prompt:
        return f"[INST] <<SYS>>\n{system_prompt}\n<</SYS>>\n\n{prompt} [/INST]"
    return f"[INST] {prompt} [/INST]"


def _zephyr(prompt: str, system_prompt: Optional[str]) -> str:
    system_block = f"<|system|>\n{system_prompt}\n" if system_prompt else ""
    return f"{system_block}<|user|>\n{prompt}\n<|assistant|>\n"


def _phi(prompt: str, system_prompt: Optional[str]) -> str:
    system_block = f"<|system|>\n{system_prompt}<|end|>\n" if system_prompt else ""
    return f"{system_block}<|user|>\n{prompt}<|end|>\n<|assistant|>\n"


class PromptFormatter:
    """Format prompts for specific model families"""

    # Known model families and their manual formatting
    MANUAL_FORMATS = {
        "mistral": lambda prompt, system: f"[INST] {_merge(prompt, system)} [/INST]",
        "mixtral": lambda prompt, system: f"[INST] {_merge(prompt, system)} [/INST]",
        "llama": _llama2,
        "llama-2": _llama2,
        "llama-3": _llama3,
        "zephyr": _zephyr,
        "phi": _phi,
    }

    def __init__(self, model_name: str, tokenizer=None):
        """
        Initialize formatter

        Args:
            model_name: HuggingFace model identifier
            tokenizer: Optional tokenizer with chat_template attribute
        """
        self.model_name = model_name
        self.tokenizer = tokenizer
        self.model_family = self._detect_model_family(model_name)

        self.has_chat_template = (
            tokenizer is not None and
            hasattr(tokenizer, 'chat_template') and
            tokenizer.chat_template is not None
        )

        if self.has_chat_template:
            logger.info(f"Using tokenizer chat template for {model_name}")
        elif self.model_family in self.MANUAL_FORMATS:
            logger.info(f"Using manual formatting for {self.model_family} family")
        else:
            logger.warning(
                f"No chat template or known format for {model_name}. "
                f"Using generic (system prompt prepended, no tags)"
            )

    def _detect_model_family(self, model_name: str) -> str:
        """
        Detect model family from model name

        Args:
            model_name: Full model identifier

        Returns:
            str: Model family identifier
        """
        name_lower = model_name.lower()

        # Order matters - most specific first
        if "llama-3" in name_lower or "llama3" in name_lower:
            return "llama-3"
        elif "llama-2" in name_lower or "llama2" in name_lower:
            return "llama-2"
        elif "llama" in name_lower:
            return "llama"
        elif "mixtral" in name_lower:
            return "mixtral"
        elif "mistral" in name_lower:
            return "mistral"
        elif "zephyr" in name_lower:
            return "zephyr"
        elif "phi" in name_lower:
            return "phi"
        else:
            return "generic"

    def _apply_chat_template(self, messages) -> str:
        return self.tokenizer.apply_chat_template(
            messages,
            tokenize=False,
            add_generation_prompt=True
        )

    def format_instruction(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Format prompt with model-specific instruction tags

        Priority:
        1. Tokenizer chat template (system role, then merged user turn)
        2. Manual formatting for known family
        3. Generic passthrough (system prompt prepended)

        Args:
            prompt: Plain text prompt (the context block)
            system_prompt: Optional persona instructions

        Returns:
            str: Formatted prompt ready for model

        Examples:
            >>> formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2")
            >>> formatter.format_instruction("What is 2+2?")
            '[INST] What is 2+2? [/INST]'
        """
        if self.has_chat_template:
            messages = [{"role": "user", "content": prompt}]
            if system_prompt:
                messages.insert(0, {"role": "system", "content": system_prompt})
            try:
                formatted = self._apply_chat_template(messages)
                logger.debug("Applied tokenizer chat template")
                return formatted
            except Exception as e:
                logger.warning(f"Tokenizer chat template failed: {e}")

            # Some templates reject the system role outright
            if system_prompt:
                try:
                    formatted = self._apply_chat_template(
                        [{"role": "user", "content": _merge(prompt, system_prompt)}]
                    )
                    logger.debug("Applied tokenizer chat template (system merged into user turn)")
                    return formatted
                except Exception as e:
                    logger.warning(
                        f"Tokenizer chat template failed again: {e}. "
                        f"Falling back to manual formatting"
                    )

        if self.model_family in self.MANUAL_FORMATS:
            formatted = self.MANUAL_FORMATS[self.model_family](prompt, system_prompt)
            logger.debug(f"Applied manual {self.model_family} formatting")
            return formatted

        logger.debug("No formatting applied (generic model)")
        return _merge(prompt, system_prompt)

    def get_info(self) -> dict:
        """
        Get formatter information

        Returns:
            dict: Formatter metadata
        """
        return {
            "model_name": self.model_name,
            "model_family": self.model_family,
            "has_chat_template": self.has_chat_template,
            "formatting_method": (
                "tokenizer_template" if self.has_chat_template
                else "manual" if self.model_family in self.MANUAL_FORMATS
                else "none"
            )
        }
