"""Mission Control Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .activity import (
    ActivityCreate,
    DeliverableCreate,
    TaskActivity,
    TaskDeliverable,
)
from .enums import (
    ActivityType,
    AgentStatus,
    DeliverableType,
    EventType,
    LedgerStatus,
    SessionStatus,
    TaskPriority,
    TaskStatus,
)
from .event import Event
from .ledger import LedgerDocument, LedgerEntry, LedgerHistoryRecord
from .task import (
    ActivationRequest,
    Agent,
    PlanningMessage,
    Session,
    Task,
    TaskCreate,
    TaskUpdate,
    Workspace,
)
from .task_types import (
    DEFAULT_TASK_TYPE,
    TASK_TYPE_REGISTRY,
    ClaudeTeamConfig,
    MultiHypothesisConfig,
    OpenClawNativeConfig,
    PlaceholderTaskConfig,
    TaskTypeConfig,
    get_task_type_metadata,
    parse_task_type_config,
)

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskPriority",
    "AgentStatus",
    "EventType",
    "SessionStatus",
    "LedgerStatus",
    "ActivityType",
    "DeliverableType",
    # Task
    "Task",
    "TaskCreate",
    "TaskUpdate",
    "ActivationRequest",
    "PlanningMessage",
    "Workspace",
    "Agent",
    "Session",
    # Event
    "Event",
    # Activity
    "TaskActivity",
    "TaskDeliverable",
    "ActivityCreate",
    "DeliverableCreate",
    # Ledger
    "LedgerDocument",
    "LedgerEntry",
    "LedgerHistoryRecord",
    # 任务类型
    "DEFAULT_TASK_TYPE",
    "TASK_TYPE_REGISTRY",
    "TaskTypeConfig",
    "OpenClawNativeConfig",
    "ClaudeTeamConfig",
    "MultiHypothesisConfig",
    "PlaceholderTaskConfig",
    "get_task_type_metadata",
    "parse_task_type_config",
]
