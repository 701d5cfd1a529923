"""
VS Code Copilot Chat 会话适配器（单个 JSON 文档）。

每个 request 是一个 Turn：
- message.text 是发起方文本
- response 数组中，kind 为 markdownContent（或没有 kind、value 为字符串）的条目是回复片段，
  多个片段以空行连接后作为一个 unit 压缩
- 其余条目（工具调用、引用、进度提示等）原样保留

Segment.locator 形如 (k, "message") 或 (k, "response", j)，k 为 request 下标。
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from typing import Any

from context_compactor.adapters.base import diff_text_segments
from context_compactor.errors import DocumentFormatError
from context_compactor.models.conversation import Conversation, Segment, SegmentKind, Turn

logger = logging.getLogger(__name__)

_ITEM_KINDS: dict[str, SegmentKind] = {
    "toolInvocationSerialized": SegmentKind.TOOL_INVOCATION,
    "prepareToolInvocation": SegmentKind.TOOL_INVOCATION,
    "thinking": SegmentKind.REASONING,
}


def is_text_item(item: Any) -> bool:
    """判断 response 条目是否为可压缩的回复文本。"""
    if not isinstance(item, dict) or not isinstance(item.get("value"), str):
        return False
    return item.get("kind") in (None, "markdownContent")


class CopilotSessionAdapter:
    """Copilot Chat 会话适配器。"""

    @property
    def name(self) -> str:
        return "copilot"

    def extract_turns(self, document: Any) -> Conversation:
        requests = self._requests(document)
        turns: list[Turn] = []
        for k, request in enumerate(requests):
            segments: list[Segment] = []
            message = request.get("message") or {}
            if isinstance(message.get("text"), str):
                segments.append(
                    Segment(kind=SegmentKind.INITIATOR, text=message["text"], locator=(k, "message"))
                )

            for j, item in enumerate(request.get("response") or []):
                locator = (k, "response", j)
                if is_text_item(item):
                    segments.append(Segment(kind=SegmentKind.RESPONDER, text=item["value"], locator=locator))
                else:
                    item_kind = item.get("kind") if isinstance(item, dict) else None
                    kind = _ITEM_KINDS.get(item_kind, SegmentKind.OTHER)
                    segments.append(Segment(kind=kind, payload=item, locator=locator))

            turns.append(Turn(segments=tuple(segments), fragment_separator="\n\n"))

        return Conversation(turns=tuple(turns), source_id=document.get("sessionId"))

    def reconstruct(self, document: Any, conversation: Conversation) -> dict[str, Any]:
        changes = diff_text_segments(self.extract_turns(document), conversation, self.name)
        result = copy.deepcopy(document)
        requests = result["requests"]

        for locator, text in changes.writes.items():
            if locator[1] == "message":
                requests[locator[0]]["message"]["text"] = text
            else:
                requests[locator[0]]["response"][locator[2]]["value"] = text

        removals: dict[int, list[int]] = defaultdict(list)
        for locator in changes.removals:
            # 发起方文本总是单片段，不会被收缩
            if locator[1] == "response":
                removals[locator[0]].append(locator[2])
        for k, indexes in removals.items():
            for j in sorted(indexes, reverse=True):
                del requests[k]["response"][j]

        if removals:
            logger.debug(f"收缩回复片段时删除了 {sum(len(v) for v in removals.values())} 个 response 条目。")
        return result

    def _requests(self, document: Any) -> list[dict[str, Any]]:
        requests = document.get("requests") if isinstance(document, dict) else None
        if not isinstance(requests, list) or not all(isinstance(r, dict) for r in requests):
            raise DocumentFormatError(
                what="Copilot 会话文档格式无效。",
                why="文档缺少 requests 数组，或其中包含非对象条目。",
                how="传入 VS Code chatSessions 目录下的会话 JSON 文件内容。",
                adapter=self.name,
            )
        return requests
