"""External tool adapters."""

from envgate.adapters.base import TaskContext, ToolAdapter, ToolOutcome
from envgate.adapters.terraform import TerraformToolAdapter

__all__ = ["TaskContext", "ToolAdapter", "ToolOutcome", "TerraformToolAdapter"]
