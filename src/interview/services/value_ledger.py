"""Per-session ledger that carries response values into later tool calls.

Values extracted from one tool's JSON response are stored twice: under
flattened dotted field names (``data.user.id`` and the leaf ``id``) and under
true JSONPath expressions (``$.data.user.id``, ``$.items[0].id``). When a
later call has an argument that looks like a shared reference (``user_id``,
``session``, ``cursor`` ...), the ledger tries several matching strategies
because output field names rarely line up with input argument names.

A ledger is single-writer session state. Parallel sessions each own their
own instance; nothing is shared between them.
"""
from __future__ import annotations

import json
import logging
import re
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable

from src.interview.services.jsonpath import (
    MISSING,
    get_value_at_path,
    looks_like_json_path,
)
from src.interview.services.schema_inferrer import extract_text_content
from src.shared.config import InterviewConfig
from src.shared.constants import (
    DEFAULT_MAX_STORED_VALUES,
    JSONPATH_MAX_ARRAY_ITEMS,
    JSONPATH_MAX_DEPTH,
    PREFERRED_PARAM_PATTERNS,
    STRUCTURE_MAX_DEPTH,
)
from src.shared.models.tools import InterviewQuestion, ToolCallResult, ToolSignature

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class StoredValue:
    """A value captured from a response, with the tool that produced it."""
    value: Any
    source_tool: str


@dataclass
class AppliedState:
    """Arguments after substitution, plus the names that were substituted."""
    args: dict[str, Any]
    used_keys: list[str] = field(default_factory=list)


class ValueLedger:
    """Bounded store of values from prior responses within one session."""

    def __init__(
        self,
        share_outputs: bool = True,
        max_stored_values: int = DEFAULT_MAX_STORED_VALUES,
        preferred_param_patterns: Iterable[str] = PREFERRED_PARAM_PATTERNS,
        session_id: str | None = None,
    ) -> None:
        if max_stored_values < 1:
            raise ValueError("max_stored_values must be at least 1")
        self._share_outputs = share_outputs
        self._max_stored_values = max_stored_values
        self._patterns = [re.compile(p, re.IGNORECASE) for p in preferred_param_patterns]
        self._values: dict[str, StoredValue] = {}
        self._json_path_values: dict[str, StoredValue] = {}
        self._recent: deque[StoredValue] = deque(maxlen=max_stored_values)
        self.session_id = session_id or str(uuid.uuid4())

    @classmethod
    def from_config(
        cls,
        config: InterviewConfig,
        session_id: str | None = None,
    ) -> ValueLedger:
        return cls(
            share_outputs=config.share_outputs,
            max_stored_values=config.max_stored_values,
            session_id=session_id,
        )

    # ------------------------------------------------------------------
    # introspection
    # ------------------------------------------------------------------

    @property
    def share_outputs(self) -> bool:
        return self._share_outputs

    @property
    def max_stored_values(self) -> int:
        return self._max_stored_values

    @property
    def stored_keys(self) -> list[str]:
        return list(self._values)

    @property
    def stored_paths(self) -> list[str]:
        return list(self._json_path_values)

    @property
    def recent_count(self) -> int:
        return len(self._recent)

    def reset(self) -> None:
        """Forget everything recorded in this session."""
        self._values.clear()
        self._json_path_values.clear()
        self._recent.clear()

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def apply_state_to_question(
        self,
        tool_name: str,
        question: InterviewQuestion,
    ) -> AppliedState:
        """Substitute stored values into reference-like arguments.

        The question itself is never mutated. Arguments whose names do not
        look like shared references, or that have no matching stored value,
        are left as generated.
        """
        args = dict(question.args)
        if not self._share_outputs:
            return AppliedState(args=args)

        used_keys: list[str] = []
        for param in list(args):
            if not self._should_prefer_state_value(param):
                continue
            stored = self.find_matching_value(param)
            if stored is None:
                continue
            args[param] = stored.value
            used_keys.append(param)

        if used_keys:
            logger.debug(
                "Applied stored values to %s: %s",
                tool_name,
                ", ".join(used_keys),
                extra={"session_id": self.session_id, "tool": tool_name},
            )
        return AppliedState(args=args, used_keys=used_keys)

    def record_response(
        self,
        tool: ToolSignature,
        response: ToolCallResult | None,
    ) -> list[str]:
        """Extract values from a successful JSON response.

        Error results, missing results, non-text content and text that is
        not JSON are skipped silently. Returns the flattened keys stored.
        """
        if response is None or response.is_error:
            return []

        text = extract_text_content(response)
        if not text:
            return []

        try:
            parsed = json.loads(text)
        except (json.JSONDecodeError, ValueError, RecursionError):
            logger.debug(
                "Skipping non-JSON response from %s",
                tool.name,
                extra={"session_id": self.session_id, "tool": tool.name},
            )
            return []
        if parsed is None:
            return []

        provided: list[str] = []
        for key, value in flatten_value(parsed).items():
            if len(self._values) >= self._max_stored_values:
                break
            self._values[key] = StoredValue(value=value, source_tool=tool.name)
            provided.append(key)

        for path, value in collect_json_paths(parsed).items():
            if len(self._json_path_values) >= self._max_stored_values:
                break
            self._json_path_values[path] = StoredValue(value=value, source_tool=tool.name)

        # deque(maxlen=...) drops from the right when appending on the left
        self._recent.appendleft(StoredValue(value=parsed, source_tool=tool.name))

        logger.debug(
            "Recorded %d value(s) from %s",
            len(provided),
            tool.name,
            extra={"session_id": self.session_id, "tool": tool.name},
        )
        return provided

    def find_matching_value(self, param_name: str) -> StoredValue | None:
        """Find a stored value for *param_name*; first strategy to hit wins.

        1. JSONPath-looking names resolve directly against stored paths,
           then against recent responses (most recent first).
        2. Normalized exact match against flattened keys, then JSONPath keys.
        3. Normalized suffix match against flattened keys, then JSONPath keys.
        4. Plain names are retried as ``$.<name>``.
        """
        is_path = looks_like_json_path(param_name)
        if is_path:
            direct = self._find_by_json_path(param_name)
            if direct is not None:
                return direct

        normalized_param = normalize_key(param_name)
        if normalized_param:
            for store in (self._values, self._json_path_values):
                for key, stored in store.items():
                    if normalize_key(key) == normalized_param:
                        return stored
            for store in (self._values, self._json_path_values):
                for key, stored in store.items():
                    if normalize_key(key).endswith(normalized_param):
                        return stored

        if not is_path:
            return self._find_by_json_path(f"$.{param_name}")
        return None

    lookup = find_matching_value

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _should_prefer_state_value(self, param_name: str) -> bool:
        return any(pattern.search(param_name) for pattern in self._patterns)

    def _find_by_json_path(self, path: str) -> StoredValue | None:
        normalized = path if path.startswith("$") else f"$.{path}"
        stored = self._json_path_values.get(normalized)
        if stored is not None:
            return stored

        for entry in self._recent:
            value = get_value_at_path(entry.value, normalized)
            if value is not MISSING:
                return StoredValue(value=value, source_tool=entry.source_tool)
        return None


def normalize_key(value: str) -> str:
    """Lowercase and strip everything but ASCII letters and digits."""
    return _NON_ALNUM.sub("", value).lower()


def flatten_value(value: Any, prefix: str = "", depth: int = 0) -> dict[str, Any]:
    """Flatten *value* into dotted keys.

    Arrays are reduced to their first element's shape. Every leaf is stored
    under both its own name and its full dotted path. Containers nested past
    the structure depth limit are skipped.
    """
    if value is None or depth > STRUCTURE_MAX_DEPTH:
        return {}
    if isinstance(value, list):
        if not value:
            return {}
        return flatten_value(value[0], prefix, depth + 1)
    if not isinstance(value, dict):
        return {prefix: value} if prefix else {}

    result: dict[str, Any] = {}
    for key, child in value.items():
        combined = f"{prefix}.{key}" if prefix else key
        if isinstance(child, (dict, list)):
            result.update(flatten_value(child, combined, depth + 1))
            continue
        result[key] = child
        result[combined] = child
    return result


def collect_json_paths(
    value: Any,
    path: str = "$",
    depth: int = 0,
    result: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Map JSONPath expressions to leaf values.

    Arrays expand up to three elements and recursion stops past depth four.
    """
    if result is None:
        result = {}
    if depth > JSONPATH_MAX_DEPTH or value is None:
        return result

    if isinstance(value, list):
        for index, item in enumerate(value[:JSONPATH_MAX_ARRAY_ITEMS]):
            collect_json_paths(item, f"{path}[{index}]", depth + 1, result)
        return result

    if not isinstance(value, dict):
        result[path] = value
        return result

    for key, child in value.items():
        child_path = f"{path}.{key}"
        if isinstance(child, (dict, list)):
            collect_json_paths(child, child_path, depth + 1, result)
        else:
            result[child_path] = child
    return result
