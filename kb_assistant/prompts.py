"""Prompt construction for grounded answers."""
from typing import Dict, List

from kb_assistant import config


def build_system_prompt(assistant_name: str = None, fallback_reply: str = None) -> str:
    """Instructions that keep the model inside the reference passages."""
    assistant_name = assistant_name or config.ASSISTANT_NAME
    fallback_reply = fallback_reply or config.FALLBACK_REPLY
    title = config.REFERENCE_TITLE

    return (
        f"You are the {assistant_name}.\n"
        "Use warm, professional, concise language (2-4 sentences).\n"
        f'Answer ONLY from "{title}" below. If the answer is not clearly present, '
        f'say "{fallback_reply}"\n'
        "Cite the primary source in parentheses at the end, e.g., \"(Employee Handbook)\"."
    )


def build_messages(
    question: str,
    reference: str,
    system_prompt: str = None,
) -> List[Dict[str, str]]:
    """Build the two-message input for the model.

    Args:
        question: The user's message, passed through unchanged
        reference: Formatted reference block ("" when nothing was retrieved)
        system_prompt: Override for the default instructions

    Returns:
        System message (instructions + reference) followed by the user message
    """
    system_prompt = system_prompt or build_system_prompt()
    return [
        {"role": "system", "content": system_prompt + reference},
        {"role": "user", "content": question},
    ]
