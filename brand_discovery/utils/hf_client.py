"""
HuggingFace Client - Causal LM behind the model client interface

The orchestrator only needs generate(prompt, system_prompt, max_tokens,
temperature) -> str and is_loaded(). This client loads a causal LM
(optionally 4-bit NF4 via bitsandbytes), wraps the context block and the
persona system prompt in the model's chat format, and returns the raw
completion. JSON extraction belongs to the Response Parser.
"""

import logging
from typing import Optional

import torch
from transformers import (
    AutoModelForCausalLM,
    AutoTokenizer,
    BitsAndBytesConfig
)

from brand_discovery.utils.prompt_formatter import PromptFormatter

logger = logging.getLogger(__name__)

DEVICE_CUDA = "cuda"
DEVICE_CPU = "cpu"


class HuggingFaceClient:
    """Wrapper for HuggingFace model inference"""

    def __init__(
        self,
        model_name: str,
        load_in_4bit: bool = True,
        device: str = DEVICE_CUDA,
        tokenizer=None,
        model=None
    ) -> None:
        """
        Initialize model and tokenizer

        Args:
            model_name: HuggingFace model identifier
            load_in_4bit: Use 4-bit quantization (CUDA only, needs bitsandbytes)
            device: "cuda" or "cpu"
            tokenizer: Pre-built tokenizer (skips from_pretrained)
            model: Pre-built model (skips from_pretrained)

        Raises:
            RuntimeError: If CUDA requested but not available
        """
        self.model_name = model_name
        self.device = device

        if device == DEVICE_CUDA and not torch.cuda.is_available():
            raise RuntimeError("CUDA requested but not available. Check nvidia-smi.")

        self.tokenizer = tokenizer if tokenizer is not None else self._load_tokenizer(model_name)
        self.formatter = PromptFormatter(model_name, self.tokenizer)

        self.model = model if model is not None else self._load_model(model_name, load_in_4bit)
        self.model.eval()

        logger.info(f"HuggingFace client ready: {model_name} on {device}")

    def _load_tokenizer(self, model_name: str):
        tokenizer = AutoTokenizer.from_pretrained(model_name)

        if tokenizer.pad_token is None:
            if tokenizer.eos_token is not None:
                tokenizer.pad_token = tokenizer.eos_token
            else:
                tokenizer.add_special_tokens({'pad_token': '[PAD]'})
                logger.warning("Added new [PAD] token as pad_token")

        return tokenizer

    def _load_model(self, model_name: str, load_in_4bit: bool):
        on_cuda = self.device == DEVICE_CUDA

        quantization_config = None
        if load_in_4bit and on_cuda:
            quantization_config = BitsAndBytesConfig(
                load_in_4bit=True,
                bnb_4bit_quant_type="nf4",
                bnb_4bit_compute_dtype=torch.bfloat16,
                bnb_4bit_use_double_quant=True
            )

        logger.info(f"Loading model: {model_name} (4-bit: {quantization_config is not None})")

        try:
            model = AutoModelForCausalLM.from_pretrained(
                model_name,
                quantization_config=quantization_config,
                device_map="auto" if on_cuda else None,
                torch_dtype=torch.bfloat16 if on_cuda else torch.float32
            )
        except torch.cuda.OutOfMemoryError:
            logger.error("CUDA Out of Memory during model loading")
            raise

        if on_cuda:
            logger.info(f"GPU memory after load: {torch.cuda.memory_allocated() / 1e9:.2f}GB allocated")

        return model

    def is_loaded(self) -> bool:
        return self.model is not None and self.tokenizer is not None

    def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 1024,
        temperature: float = 0.7
    ) -> str:
        """
        Generate a completion for a context block

        Args:
            prompt: Context block (sent as the user turn)
            system_prompt: Persona instructions (system turn, or merged in)
            max_tokens: Maximum new tokens
            temperature: Sampling temperature (0.0 = greedy)

        Returns:
            str: Generated text, prompt tokens excluded

        Raises:
            RuntimeError: If model not loaded
            torch.cuda.OutOfMemoryError: If GPU runs out of memory
        """
        if not self.is_loaded():
            raise RuntimeError("Model not loaded")

        formatted = self.formatter.format_instruction(prompt, system_prompt=system_prompt)

        inputs = self.tokenizer(formatted, return_tensors="pt")
        if self.device == DEVICE_CUDA:
            inputs = inputs.to(DEVICE_CUDA)

        prompt_tokens = inputs.input_ids.shape[1]

        try:
            with torch.no_grad():
                outputs = self.model.generate(
                    inputs.input_ids,
                    attention_mask=inputs.attention_mask,
                    max_new_tokens=max_tokens,
                    temperature=temperature,
                    do_sample=temperature > 0,
                    pad_token_id=self.tokenizer.pad_token_id
                )
        except torch.cuda.OutOfMemoryError:
            logger.error(f"CUDA OOM during generation (prompt tokens: {prompt_tokens})")
            raise

        generated_ids = outputs[0][prompt_tokens:]
        text = self.tokenizer.decode(generated_ids, skip_special_tokens=True)

        logger.debug(f"Generated {len(generated_ids)} tokens (prompt {prompt_tokens} tokens)")
        return text
