"""Loyalty job exports."""

from .birthdays import run_birthday_rewards  # noqa: F401

__all__ = ["run_birthday_rewards"]
