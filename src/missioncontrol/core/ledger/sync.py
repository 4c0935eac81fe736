"""LedgerSync -- 将任务 / initiative 状态镜像到 INITIATIVES.json

一致性边界弱于主库：任何 I/O 或解析错误都在此捕获并记录日志，
不向主请求传播。

写入采用“临时文件 + rename”原子替换，读者永远看不到半写文件。
文件本身没有锁：同一进程内的写入在事件循环中串行执行，
但多个进程（或线程）并发读改写仍可能丢失更新。
"""

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

import structlog
from pydantic import ValidationError as PydanticValidationError

from ..config import LEDGER_ACTOR
from ..models.enums import LedgerStatus
from ..models.ledger import LedgerDocument, LedgerEntry, LedgerHistoryRecord
from .resolver import candidate_initiative_ids, map_kanban_status

log = structlog.get_logger()

# 读写 ledger 时视为“失败但不致命”的异常
_LEDGER_ERRORS = (OSError, json.JSONDecodeError, PydanticValidationError, ValueError)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class LedgerSync:
    """INITIATIVES.json 读写器"""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> LedgerDocument | None:
        """读取 ledger 文档；文件不存在时返回 None

        Raises:
            json.JSONDecodeError / pydantic.ValidationError: 文档损坏
        """
        if not self._path.exists():
            return None
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("ledger 顶层必须是 JSON 对象")
        if not isinstance(raw.get("initiatives"), list):
            raw["initiatives"] = []
        return LedgerDocument.model_validate(raw)

    def save(self, document: LedgerDocument) -> None:
        """原子写入：同目录临时文件写完后 rename 覆盖原文件"""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f"{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document.to_json_dict(), f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def list_entries(self) -> list[LedgerEntry]:
        """列出全部 initiative；文件缺失或损坏时返回空列表"""
        try:
            document = self.load()
        except _LEDGER_ERRORS as e:
            log.warning("ledger_read_failed", path=str(self._path), error=str(e))
            return []
        return document.initiatives if document else []

    def writeback_status(
        self,
        task_id: str,
        title: str,
        kanban_status: str,
        initiative_id: str | None = None,
    ) -> LedgerEntry | None:
        """任务状态变化时回写 ledger

        按解析链依次尝试候选 id，命中第一个存在的条目后追加一条 history，
        并更新条目 status 与文档 lastUpdate。

        Returns:
            被更新的条目；未命中或失败时返回 None
        """
        try:
            document = self.load()
            if document is None:
                log.warning("ledger_missing", path=str(self._path), task_id=task_id)
                return None

            entry = None
            for candidate in candidate_initiative_ids(task_id, title, initiative_id):
                entry = document.find(candidate)
                if entry is not None:
                    break
            if entry is None:
                log.warning("ledger_no_matching_initiative", task_id=task_id, title=title)
                return None

            mapped = map_kanban_status(kanban_status)
            now = _now_iso()
            self._append_history(
                entry,
                mapped,
                now,
                LEDGER_ACTOR,
                f"Updated via Kanban ({kanban_status})",
            )
            document.last_update = now
            self.save(document)
        except _LEDGER_ERRORS as e:
            log.error(
                "ledger_writeback_failed",
                path=str(self._path),
                task_id=task_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

        log.info(
            "ledger_writeback_completed",
            initiative_id=entry.id,
            ledger_status=mapped.value,
            kanban_status=kanban_status,
        )
        return entry

    def ensure_planned_entry(
        self,
        initiative_id: str,
        title: str,
        lead: str,
        external_request_id: str | None = None,
    ) -> bool:
        """不存在时追加一个 planned 条目（带一条种子 history）

        按 id 与 external_request_id 双重去重；文档缺失时新建。

        Returns:
            True 表示新追加了条目
        """
        try:
            document = self.load() or LedgerDocument(last_update=None, initiatives=[])
            initiative_id = initiative_id.upper()
            for existing in document.initiatives:
                if existing.id.upper() == initiative_id or (
                    external_request_id and existing.external_request_id == external_request_id
                ):
                    return False

            now = _now_iso()
            entry = LedgerEntry(
                id=initiative_id,
                title=title,
                status=LedgerStatus.PLANNED.value,
                lead=lead,
                participants=[lead],
                priority="high",
                created=now.split("T")[0],
                target="TBD",
                summary=title,
                source=LEDGER_ACTOR,
                external_request_id=external_request_id,
                history=[
                    LedgerHistoryRecord(
                        status=LedgerStatus.PLANNED.value,
                        at=now,
                        by=LEDGER_ACTOR,
                        note="Created from Mission Control panel",
                    )
                ],
            )
            document.initiatives = [*document.initiatives, entry]
            document.last_update = now
            self.save(document)
        except _LEDGER_ERRORS as e:
            log.warning(
                "ledger_planned_append_failed",
                initiative_id=initiative_id,
                error=str(e),
            )
            return False

        log.info("ledger_planned_entry_created", initiative_id=initiative_id)
        return True

    def append_status(
        self,
        initiative_id: str,
        status: LedgerStatus,
        note: str,
        actor: str = LEDGER_ACTOR,
        external_request_id: str | None = None,
    ) -> LedgerEntry | None:
        """为指定 initiative 追加一条状态记录（激活流程使用）"""
        try:
            document = self.load()
            entry = document.find(initiative_id) if document else None
            if entry is None:
                log.warning("ledger_initiative_not_found", initiative_id=initiative_id)
                return None

            now = _now_iso()
            if external_request_id:
                entry.external_request_id = external_request_id
            self._append_history(entry, status, now, actor, note)
            document.last_update = now
            self.save(document)
        except _LEDGER_ERRORS as e:
            log.warning(
                "ledger_status_append_failed",
                initiative_id=initiative_id,
                error=str(e),
            )
            return None

        log.info("ledger_status_appended", initiative_id=entry.id, ledger_status=status.value)
        return entry

    @staticmethod
    def _append_history(
        entry: LedgerEntry,
        status: LedgerStatus,
        at: str,
        by: str,
        note: str,
    ) -> None:
        entry.status = status.value
        entry.history = [
            *entry.history,
            LedgerHistoryRecord(status=status.value, at=at, by=by, note=note),
        ]
