"""Credential prompt implementations."""

from .terminal_prompt import ask_user_password

__all__ = [
	"ask_user_password",
]
