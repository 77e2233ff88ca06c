"""ClickUp task service client and models."""

from .client import ClickUpClient
from .models import CustomField, DropdownOption, Task

__all__ = ["ClickUpClient", "CustomField", "DropdownOption", "Task"]
