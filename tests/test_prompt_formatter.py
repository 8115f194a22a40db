"""
Tests for PromptFormatter

Uses fake tokenizers so no model download is needed.
"""

from brand_discovery.utils.prompt_formatter import PromptFormatter


class FakeTokenizer:
    """Tokenizer with a chat template that renders role tags"""

    chat_template = "{{ messages }}"

    def __init__(self, reject_system=False):
        self.reject_system = reject_system
        self.calls = []

    def apply_chat_template(self, messages, tokenize=False, add_generation_prompt=True):
        self.calls.append(messages)
        if self.reject_system and any(m['role'] == 'system' for m in messages):
            raise ValueError("Conversation roles must alternate user/assistant")
        return "".join(f"<{m['role']}>{m['content']}" for m in messages) + "<assistant>"


class BrokenTokenizer(FakeTokenizer):
    def apply_chat_template(self, messages, tokenize=False, add_generation_prompt=True):
        raise RuntimeError("template error")


def test_detect_model_family():
    cases = {
        "mistralai/Mistral-7B-Instruct-v0.2": "mistral",
        "mistralai/Mixtral-8x7B-Instruct-v0.1": "mixtral",
        "meta-llama/Meta-Llama-3-8B-Instruct": "llama-3",
        "meta-llama/Llama-2-7b-chat-hf": "llama-2",
        "HuggingFaceH4/zephyr-7b-beta": "zephyr",
        "microsoft/Phi-3-mini-4k-instruct": "phi",
        "gpt2": "generic",
    }
    for name, family in cases.items():
        assert PromptFormatter(name).model_family == family


def test_chat_template_with_system_role():
    tokenizer = FakeTokenizer()
    formatter = PromptFormatter("any/model", tokenizer)

    formatted = formatter.format_instruction("Hello", system_prompt="Be warm")

    assert formatted == "<system>Be warm<user>Hello<assistant>"
    assert formatter.get_info()['formatting_method'] == "tokenizer_template"


def test_chat_template_rejecting_system_role_merges():
    tokenizer = FakeTokenizer(reject_system=True)
    formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2", tokenizer)

    formatted = formatter.format_instruction("Hello", system_prompt="Be warm")

    assert formatted == "<user>Be warm\n\nHello<assistant>"
    assert len(tokenizer.calls) == 2


def test_broken_template_falls_back_to_manual():
    formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2", BrokenTokenizer())

    formatted = formatter.format_instruction("Hello", system_prompt="Be warm")

    assert formatted == "[INST] Be warm\n\nHello [/INST]"


def test_manual_mistral_without_system():
    formatter = PromptFormatter("mistralai/Mistral-7B-Instruct-v0.2")
    assert formatter.format_instruction("What is 2+2?") == "[INST] What is 2+2? [/INST]"


def test_manual_llama2_system_block():
    formatted = PromptFormatter("meta-llama/Llama-2-7b-chat-hf").format_instruction(
        "Hello", system_prompt="Be warm"
    )
    assert formatted == "[INST] <<SYS>>\nBe warm\n<</SYS>>\n\nHello [/INST]"


def test_manual_llama3_system_header():
    formatted = PromptFormatter("meta-llama/Meta-Llama-3-8B-Instruct").format_instruction(
        "Hello", system_prompt="Be warm"
    )
    assert "<|start_header_id|>system<|end_header_id|>\n\nBe warm<|eot_id|>" in formatted
    assert formatted.endswith("<|start_header_id|>assistant<|end_header_id|>\n\n")


def test_generic_prepends_system_prompt():
    formatter = PromptFormatter("gpt2")

    assert formatter.format_instruction("Hello", system_prompt="Be warm") == "Be warm\n\nHello"
    assert formatter.get_info()['formatting_method'] == "none"
