"""Ledger Domain Model -- INITIATIVES.json 文档结构

该文件由其他进程直接读取，字段形状是持久契约。
未知字段一律保留（extra="allow"），写回时不丢失。
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class LedgerHistoryRecord(BaseModel):
    """initiative 状态历史（只追加）"""

    model_config = ConfigDict(extra="allow")

    status: str
    at: str
    by: str
    note: str = ""


class LedgerEntry(BaseModel):
    """initiative 条目"""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str = ""
    status: str = "planned"
    lead: str | None = None
    participants: list[Any] = Field(default_factory=list)
    priority: str | None = None
    created: str | None = None
    target: str | None = None
    summary: str | None = None
    source: str | None = None
    external_request_id: str | None = None
    history: list[LedgerHistoryRecord] = Field(default_factory=list)


class LedgerDocument(BaseModel):
    """INITIATIVES.json 顶层文档

    序列化只输出读入时已有或之后显式赋值的字段，避免给外部文档凭空添加 null 键；
    因此修改字段必须整体赋值，不能原地 append。
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    last_update: str | None = Field(default=None, alias="lastUpdate")
    initiatives: list[LedgerEntry] = Field(default_factory=list)

    def find(self, initiative_id: str) -> LedgerEntry | None:
        """按 id 查找条目（大小写不敏感）"""
        wanted = initiative_id.upper()
        for entry in self.initiatives:
            if entry.id.upper() == wanted:
                return entry
        return None

    def to_json_dict(self) -> dict[str, Any]:
        """序列化为写盘结构（保持 lastUpdate 键名）"""
        return self.model_dump(by_alias=True, exclude_unset=True)
