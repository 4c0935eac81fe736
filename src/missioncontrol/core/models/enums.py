"""枚举定义

包含 TaskStatus 看板状态、TaskPriority、AgentStatus、EventType、
SessionStatus、LedgerStatus 等枚举。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """看板状态

    外部看板允许几乎任意流转，此处不维护合法流转表；
    有副作用的流转由 TransitionService 处理。
    """

    PENDING_DISPATCH = "pending_dispatch"
    PLANNING = "planning"
    INBOX = "inbox"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    TESTING = "testing"
    REVIEW = "review"
    DONE = "done"


class TaskPriority(StrEnum):
    """任务优先级"""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class AgentStatus(StrEnum):
    """Agent 在线状态"""

    STANDBY = "standby"
    WORKING = "working"
    OFFLINE = "offline"


class EventType(StrEnum):
    """审计事件类型"""

    TASK_CREATED = "task_created"
    TASK_ASSIGNED = "task_assigned"
    TASK_STATUS_CHANGED = "task_status_changed"
    TASK_COMPLETED = "task_completed"
    TASK_DISPATCHED = "task_dispatched"


class SessionStatus(StrEnum):
    """派发会话状态"""

    ACTIVE = "active"
    ENDED = "ended"


class LedgerStatus(StrEnum):
    """ledger（INITIATIVES.json）中 initiative 的状态"""

    PLANNED = "planned"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELED = "canceled"
    BLOCKED = "blocked"


class ActivityType(StrEnum):
    """任务活动类型"""

    SPAWNED = "spawned"
    UPDATED = "updated"
    COMPLETED = "completed"
    FILE_CREATED = "file_created"
    STATUS_CHANGED = "status_changed"


class DeliverableType(StrEnum):
    """交付物类型"""

    FILE = "file"
    URL = "url"
    ARTIFACT = "artifact"
