"""Prompt text for chat, fix, and generation requests."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devpilot.memory.models import Message

CHAT_SYSTEM_PROMPT = (
    "You are an AI coding assistant. You have memory of previous conversations "
    "and can reference them. Help with programming questions, code generation, "
    "and debugging."
)

ANALYZE_SYSTEM_PROMPT = (
    "You are a code debugging assistant. Analyze the error and provide a clear fix "
    "with explanation. Focus on the root cause and provide actionable solutions."
)

FIX_SYSTEM_PROMPT = """You are a code fixing assistant. Analyze the error and provide \
the EXACT fixed code that should replace the problematic code. Format your response as:

PROBLEM: [Brief description of the issue]
SOLUTION: [Step-by-step fix]

FILES_TO_MODIFY:
- FILE: [relative/path/to/file]
  CONTENT: [The complete file content with the fix applied]

Repeat the FILE/CONTENT entry for every file that changes. Be specific and \
provide working code that fixes the issue."""

WEBAPP_SYSTEM_PROMPT = """You are an expert web app generator. Create complete, \
functional, mobile-responsive web applications based on user ideas. Always provide:

1. Complete HTML file with embedded CSS and JavaScript
2. Modern, clean, responsive design
3. Full functionality as requested
4. Dark theme with good UX

Format your response as:
SOLUTION: [Brief description of what you created]

FILES_TO_MODIFY:
- FILE: public/index.html
  CONTENT: [Complete HTML file with embedded styles and scripts]

Make the app fully functional and production-ready."""

CODE_SYSTEM_PROMPT = (
    "You are a code generation assistant. Generate clean, well-documented {language} code "
    "based on the user's request. Only return the code without explanations."
)

REPO_CODE_SYSTEM_PROMPT = (
    "You are an expert {language} developer. Generate clean, efficient, and well-commented code "
    "based on the user's requirements. Focus on best practices and maintainability. "
    "Currently working with repository: {repository}"
)

# Canned request wordings for common code tasks.
CODE_PRESETS = {
    "analyze": (
        "Analyze this code or issue: {prompt}. Provide detailed analysis including potential "
        "problems, best practices, and suggestions for improvement."
    ),
    "explain": (
        "Explain this code or concept in detail: {prompt}. Break it down step by step and "
        "explain what each part does."
    ),
    "optimize": (
        "Optimize this code for better performance, readability, and maintainability: {prompt}. "
        "Provide the optimized version with explanations."
    ),
}


def chat_system_prompt(repository: str | None = None) -> str:
    if repository:
        return f"{CHAT_SYSTEM_PROMPT} Currently working with repository: {repository}"
    return CHAT_SYSTEM_PROMPT


def format_history(messages: list[Message]) -> str:
    """Render prior messages as plain ``User:`` / ``AI:`` lines."""
    lines = []
    for message in messages:
        speaker = "User" if message.role == "user" else "AI"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def contextual_prompt(message: str, history: list[Message]) -> str:
    """Prefix the user's message with recent conversation, if any."""
    if not history:
        return message
    return f"Previous conversation context:\n{format_history(history)}\n\nCurrent message: {message}"


def fix_user_prompt(error: str, description: str | None, file_path: str | None, *, apply: bool) -> str:
    context = description or "No additional context"
    if apply:
        return (
            f"Fix this error and provide the corrected code: {error}\n\n"
            f"Context: {context}\n\n"
            f"File path: {file_path or 'Not specified'}\n\n"
            "I need the actual fixed code that I can apply to my files."
        )
    return f"I'm getting this error: {error}\n\nAdditional context: {context}\n\nPlease help me fix this issue."


def webapp_user_prompt(idea: str, description: str) -> str:
    return (
        f"Create a complete web application for: {idea}\n\n"
        f"Additional details: {description or 'None'}\n\n"
        "Make it mobile-responsive, modern, and fully functional."
    )


def code_system_prompt(language: str, repository: str | None = None) -> str:
    if repository:
        return REPO_CODE_SYSTEM_PROMPT.format(language=language, repository=repository)
    return CODE_SYSTEM_PROMPT.format(language=language)


def code_user_prompt(prompt: str, preset: str | None = None) -> str:
    """Wrap *prompt* in a preset's wording. Raises ValueError for unknown presets."""
    if preset is None:
        return prompt
    template = CODE_PRESETS.get(preset)
    if template is None:
        msg = f"Unknown preset {preset!r}. Expected one of {tuple(CODE_PRESETS)}."
        raise ValueError(msg)
    return template.format(prompt=prompt)
