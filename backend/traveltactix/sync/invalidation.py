"""
변경 이벤트를 영향받는 쿼리 키로 변환하는 명시적 매핑

"어떤 변경이든 전부 재조회" 대신, 규칙에 맞는 쿼리 키만 무효화하여 재조회 부하를 제한합니다.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .events import ChangeEvent, ChangeType

ALL_EVENTS = frozenset(ChangeType)


@dataclass(frozen=True)
class InvalidationRule:
    table: str
    query_key: str
    events: frozenset[ChangeType] = ALL_EVENTS
    # 비어 있으면 모든 레코드가 대상, 있으면 레코드의 해당 필드 중 하나가 구독자와 같아야 함
    subscriber_fields: tuple[str, ...] = ()

    def matches(self, event: ChangeEvent, subscriber_id: str | None) -> bool:
        if event.table != self.table or event.event not in self.events:
            return False
        if not self.subscriber_fields:
            return True
        if subscriber_id is None:
            return False
        return any(event.record.get(name) == subscriber_id for name in self.subscriber_fields)

    def key_for(self, subscriber_id: str | None) -> str:
        return self.query_key.format(user_id=subscriber_id or "anonymous")


@dataclass
class InvalidationMap:
    rules: list[InvalidationRule] = field(default_factory=list)

    def add(self, rule: InvalidationRule) -> "InvalidationMap":
        self.rules.append(rule)
        return self

    @property
    def tables(self) -> set[str]:
        return {rule.table for rule in self.rules}

    def keys_for(self, event: ChangeEvent, subscriber_id: str | None = None) -> list[str]:
        keys: list[str] = []
        for rule in self.rules:
            if rule.matches(event, subscriber_id):
                key = rule.key_for(subscriber_id)
                if key not in keys:
                    keys.append(key)
        return keys

    def only(self, query_keys: Iterable[str]) -> "InvalidationMap":
        """지정한 쿼리 키 템플릿에 해당하는 규칙만 남긴 사본"""
        wanted = set(query_keys)
        return InvalidationMap([rule for rule in self.rules if rule.query_key in wanted])


INSERT_ONLY = frozenset({ChangeType.INSERT})
INSERT_OR_UPDATE = frozenset({ChangeType.INSERT, ChangeType.UPDATE})


def default_invalidation_map() -> InvalidationMap:
    return InvalidationMap(
        [
            InvalidationRule("friendships", "friends:{user_id}", subscriber_fields=("user_id", "friend_id")),
            InvalidationRule("messages", "conversations:{user_id}", INSERT_ONLY, ("receiver_id",)),
            InvalidationRule("messages", "conversations:{user_id}", frozenset({ChangeType.UPDATE}), ("sender_id", "receiver_id")),
            InvalidationRule("activity_feed", "activity:global", INSERT_ONLY),
            InvalidationRule("activity_feed", "activity:personal:{user_id}", INSERT_ONLY, ("user_id",)),
            InvalidationRule("user_missions", "missions:{user_id}", subscriber_fields=("user_id",)),
            InvalidationRule("profiles", "profile:{user_id}", INSERT_OR_UPDATE, ("user_id",)),
            InvalidationRule("places", "places", frozenset({ChangeType.UPDATE})),
            InvalidationRule("user_streaks", "streak:{user_id}", INSERT_OR_UPDATE, ("user_id",)),
            InvalidationRule("user_notifications", "notifications:{user_id}", subscriber_fields=("user_id",)),
        ]
    )
