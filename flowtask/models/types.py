# flowtask type definitions
# Rev 0.2.0

from __future__ import annotations
from typing import Literal

# Tree node classification: real task vs stage template placeholders
NodeKind = Literal["task", "template-task", "template-subtask"]

# Dashboard grouping dimensions (fixed order matters for composite keys)
Dimension = Literal["stage", "task_type", "priority", "status"]

# Board time filter: match on start date, end date or work log time
TimeFilterKind = Literal["start", "end", "work"]
